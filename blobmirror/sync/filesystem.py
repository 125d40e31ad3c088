"""Local filesystem access used by the upload handlers."""

import os
from pathlib import Path
from typing import Protocol

from ..exceptions import LocalReadError
from ..paths import PathLike


class FileReader(Protocol):
    """Read capability the handlers need from the local filesystem."""

    def is_dir(self, path: PathLike) -> bool: ...

    def read_all(self, path: PathLike) -> bytes: ...


class LocalFileReader:
    """Reads files straight from disk."""

    def is_dir(self, path: PathLike) -> bool:
        """Return True if ``path`` currently is a directory."""
        return Path(path).is_dir()

    def read_all(self, path: PathLike) -> bytes:
        """Read the full content of a file.

        Args:
            path: File to read

        Returns:
            File content

        Raises:
            LocalReadError: If the file cannot be read (missing, a directory,
                permission denied, ...)
        """
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise LocalReadError(os.fspath(path), e.strerror or str(e)) from e
