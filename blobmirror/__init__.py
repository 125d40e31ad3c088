"""blobmirror - mirror a local folder into an Azure blob container."""

from .api import AzureBlobClient
from .config import MirrorConfig, load_config
from .exceptions import (
    BlobMirrorError,
    BlobNotFoundError,
    ChecksumMismatchError,
    ConfigError,
    LocalReadError,
    PathOutsideRootError,
    StorageAuthenticationError,
    StorageConnectionError,
    StorageError,
)
from .paths import PathCodec
from .storage import InMemoryStorage, StorageGateway
from .utils import compute_content_md5

__all__ = [
    "AzureBlobClient",
    "InMemoryStorage",
    "StorageGateway",
    "MirrorConfig",
    "load_config",
    "PathCodec",
    "BlobMirrorError",
    "BlobNotFoundError",
    "ChecksumMismatchError",
    "ConfigError",
    "LocalReadError",
    "PathOutsideRootError",
    "StorageAuthenticationError",
    "StorageConnectionError",
    "StorageError",
    "compute_content_md5",
]
