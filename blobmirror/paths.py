"""Mapping from local paths to blob keys."""

import os
from pathlib import Path
from typing import Union
from urllib.parse import quote

from .exceptions import PathOutsideRootError

PathLike = Union[str, "os.PathLike[str]"]

# Characters left unescaped besides ASCII letters and digits.
# quote() always keeps "-", "_", "." and "~".
SAFE_CHARACTERS = "/"

SEPARATOR = "/"


def normalize_separators(path: str) -> str:
    """Convert Windows-style separators to the remote separator."""
    return path.replace("\\", SEPARATOR)


class PathCodec:
    """Derives blob keys from paths under a root folder.

    Keys are the path relative to the root, using ``/`` as separator and
    percent-encoded so that only ASCII alphanumerics and ``-_.~/`` appear
    unescaped. The codec never touches the filesystem: removed paths no
    longer exist when their key is computed.
    """

    def __init__(self, root_folder: PathLike):
        root = normalize_separators(os.fspath(root_folder))
        # "/" stays "/", "/bucket/" becomes "/bucket"
        self.root_folder = root.rstrip(SEPARATOR) or SEPARATOR

    def blob_key_for(self, path: PathLike) -> str:
        """Return the blob key for an absolute path under the root folder.

        Args:
            path: Local path, with either separator style

        Returns:
            Percent-encoded blob key

        Raises:
            PathOutsideRootError: If the path is not strictly below the root

        Examples:
            >>> PathCodec("/bucket").blob_key_for("/bucket/folder1/file.txt")
            'folder1/file.txt'
            >>> PathCodec("/bucket").blob_key_for("/bucket\\\\folder1\\\\file.txt")
            'folder1/file.txt'
        """
        raw = os.fspath(path)
        normalized = normalize_separators(raw)

        if self.root_folder == SEPARATOR:
            prefix = SEPARATOR
        else:
            prefix = self.root_folder + SEPARATOR
        if not normalized.startswith(prefix):
            raise PathOutsideRootError(raw, self.root_folder)

        relative = normalized[len(prefix) :].rstrip(SEPARATOR)
        if not relative:
            raise PathOutsideRootError(raw, self.root_folder)
        return self.encode(relative)

    def encode(self, fragment: str) -> str:
        """Percent-encode a relative key fragment.

        Used for names returned by a storage listing, which come back raw.
        Must not be applied to a key that is already encoded. Names that
        were not valid UTF-8 on disk keep their original bytes, each
        escaped as %XX.
        """
        return quote(
            normalize_separators(fragment),
            safe=SAFE_CHARACTERS,
            errors="surrogateescape",
        )


def resolve_root(root_folder: PathLike) -> Path:
    """Return the absolute form of a root folder, with ``~`` and symlinks resolved."""
    return Path(os.fspath(root_folder)).expanduser().resolve()


def resolve_path(path: PathLike) -> str:
    """Return the absolute form of a path given on the command line.

    Only the parent folder is resolved. The last component is kept as is so
    that symlinked files and paths that no longer exist map the same way
    the watcher reports them.
    """
    absolute = Path(os.fspath(path)).expanduser().absolute()
    return str(absolute.parent.resolve() / absolute.name)
