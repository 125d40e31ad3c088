"""Exception hierarchy for blobmirror."""

from typing import Optional


class BlobMirrorError(Exception):
    """Base class for all blobmirror errors."""


class ConfigError(BlobMirrorError):
    """Raised when required configuration is missing or invalid."""


class PathOutsideRootError(BlobMirrorError):
    """Raised when a path does not live under the watched root folder."""

    def __init__(self, path: str, root: str):
        super().__init__(f"Path {path!r} is not under root folder {root!r}")
        self.path = path
        self.root = root


class LocalReadError(BlobMirrorError):
    """Raised when a local file cannot be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read {path!r}: {reason}")
        self.path = path


class StorageError(BlobMirrorError):
    """Raised when a storage gateway call fails.

    Subclasses distinguish the cases callers react to; anything else is
    raised as a plain ``StorageError``.
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class BlobNotFoundError(StorageError):
    """Raised when no object exists under the requested key."""

    def __init__(self, key: str, error_code: Optional[str] = "BlobNotFound"):
        super().__init__(f"Blob not found: {key}", error_code=error_code)
        self.key = key


class StorageConnectionError(StorageError):
    """Raised when the storage service cannot be reached."""


class StorageAuthenticationError(StorageError):
    """Raised when the storage service rejects the credentials."""


class ChecksumMismatchError(StorageError):
    """Raised when uploaded content does not match the supplied checksum."""
