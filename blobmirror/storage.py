"""Storage gateway protocol and in-memory implementation.

Keys handed to a gateway are blob keys as produced by
:class:`~blobmirror.paths.PathCodec`, i.e. already percent-encoded. The
gateway decodes them to the stored blob name. ``list`` returns raw stored
names, which callers must encode once before passing them back.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol
from urllib.parse import unquote

from .exceptions import BlobNotFoundError, ChecksumMismatchError
from .utils import compute_content_md5

logger = logging.getLogger(__name__)


def _decode(key: str) -> str:
    # Inverse of PathCodec.encode, including names that were not valid UTF-8
    return unquote(key, errors="surrogateescape")


class StorageGateway(Protocol):
    """Capabilities the sync handlers need from a remote object store."""

    def put(self, key: str, content: bytes, checksum: Optional[str] = None) -> None:
        """Upload ``content`` under ``key``, replacing any existing object."""
        ...

    def get(self, key: str) -> bytes:
        """Return the content stored under ``key``."""
        ...

    def delete(self, key: str) -> None:
        """Delete the object stored under ``key``.

        Raises:
            BlobNotFoundError: If no object exists under ``key``
        """
        ...

    def list(self, prefix: str) -> list[str]:
        """Return the raw names of every object starting with ``prefix``."""
        ...


class InMemoryStorage:
    """Dictionary-backed gateway with the same semantics as the remote one."""

    def __init__(self, blobs: Optional[dict[str, bytes]] = None):
        """Initialize the store.

        Args:
            blobs: Optional initial content, keyed by raw blob name
        """
        self._blobs: dict[str, bytes] = dict(blobs or {})
        self._lock = threading.Lock()

    @property
    def names(self) -> list[str]:
        """Raw names currently stored, sorted."""
        with self._lock:
            return sorted(self._blobs)

    def put(self, key: str, content: bytes, checksum: Optional[str] = None) -> None:
        if checksum is not None and checksum != compute_content_md5(content):
            raise ChecksumMismatchError(
                f"Checksum mismatch for {key}", error_code="Md5Mismatch"
            )
        name = _decode(key)
        with self._lock:
            self._blobs[name] = bytes(content)
        logger.debug("Stored %s (%d bytes)", name, len(content))

    def get(self, key: str) -> bytes:
        name = _decode(key)
        with self._lock:
            try:
                return self._blobs[name]
            except KeyError:
                raise BlobNotFoundError(key) from None

    def delete(self, key: str) -> None:
        name = _decode(key)
        with self._lock:
            if name not in self._blobs:
                raise BlobNotFoundError(key)
            del self._blobs[name]
        logger.debug("Deleted %s", name)

    def list(self, prefix: str) -> list[str]:
        raw_prefix = _decode(prefix)
        with self._lock:
            return [name for name in self._blobs if name.startswith(raw_prefix)]
