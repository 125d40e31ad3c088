"""Utility functions for blobmirror."""

import base64
import hashlib

# =============================================================================
# Constants
# =============================================================================

# Debounce window applied by the watch adapter (seconds)
DEFAULT_DEBOUNCE_SECONDS: float = 10.0

# Azure Blob REST API version sent with every request
DEFAULT_API_VERSION: str = "2021-08-06"

# Request timeout for storage calls (seconds)
DEFAULT_TIMEOUT: float = 30.0


# =============================================================================
# Checksum utilities
# =============================================================================


def compute_content_md5(content: bytes) -> str:
    """Compute the checksum sent alongside an upload.

    The value is the base64-encoded MD5 digest, the format the storage
    service expects in the ``Content-MD5`` header.

    Args:
        content: Bytes that will be uploaded

    Returns:
        Base64-encoded MD5 digest

    Examples:
        >>> compute_content_md5(b"")
        '1B2M2Y8AsgTpgAmY7PhCfg=='
        >>> compute_content_md5(b"hello")
        'XUFAKrxLKna5cZ2REBfFkg=='
    """
    digest = hashlib.md5(content).digest()
    return base64.b64encode(digest).decode("ascii")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
