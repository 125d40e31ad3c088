"""API client for Azure Blob Storage."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from email.utils import formatdate
from typing import Any, Generator
from urllib.parse import unquote
from xml.etree import ElementTree

import httpx

from .exceptions import (
    BlobNotFoundError,
    ChecksumMismatchError,
    ConfigError,
    StorageAuthenticationError,
    StorageConnectionError,
    StorageError,
)
from .utils import DEFAULT_API_VERSION, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

# Standard headers included, in this order, in the Shared Key string-to-sign
_SIGNED_HEADERS = (
    "Content-Encoding",
    "Content-Language",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "If-Modified-Since",
    "If-Match",
    "If-None-Match",
    "If-Unmodified-Since",
    "Range",
)


def build_string_to_sign(request: httpx.Request, account_name: str) -> str:
    """Build the Shared Key string-to-sign for a request.

    Args:
        request: Request carrying its final ``x-ms-*`` headers
        account_name: Storage account name

    Returns:
        String that must be signed with the account key
    """
    lines = [request.method.upper()]
    for name in _SIGNED_HEADERS:
        value = request.headers.get(name, "")
        # Zero length is sent as an empty string since version 2015-02-21
        if name == "Content-Length" and value == "0":
            value = ""
        lines.append(value)

    ms_headers = sorted(
        (key.lower(), value.strip())
        for key, value in request.headers.items()
        if key.lower().startswith("x-ms-")
    )
    canonical_headers = "".join(f"{key}:{value}\n" for key, value in ms_headers)

    raw_path = request.url.raw_path.split(b"?", 1)[0].decode("ascii")
    resource = f"/{account_name}{raw_path}"
    params: dict[str, list[str]] = {}
    for key, value in request.url.params.multi_items():
        params.setdefault(key.lower(), []).append(value)
    for key in sorted(params):
        resource += f"\n{key}:{','.join(sorted(params[key]))}"

    return "\n".join(lines) + "\n" + canonical_headers + resource


class SharedKeyAuth(httpx.Auth):
    """httpx authentication flow implementing Azure Shared Key signing."""

    def __init__(
        self, account_name: str, account_key: str, api_version: str = DEFAULT_API_VERSION
    ):
        self.account_name = account_name
        try:
            self._key = base64.b64decode(account_key, validate=True)
        except ValueError as e:
            raise ConfigError("Account key is not valid base64") from e
        self.api_version = api_version

    def sign(self, string_to_sign: str) -> str:
        digest = hmac.new(
            self._key, string_to_sign.encode("utf-8"), hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["x-ms-date"] = formatdate(usegmt=True)
        request.headers["x-ms-version"] = self.api_version
        signature = self.sign(build_string_to_sign(request, self.account_name))
        request.headers["Authorization"] = f"SharedKey {self.account_name}:{signature}"
        yield request


class AzureBlobClient:
    """Client for a single Azure Blob Storage container.

    Implements the storage gateway protocol. Every call is a single attempt;
    failures are raised as :class:`~blobmirror.exceptions.StorageError`
    subclasses.
    """

    def __init__(
        self,
        account_name: str,
        account_key: str,
        container_name: str,
        endpoint: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the Azure Blob client.

        Args:
            account_name: Storage account name
            account_key: Base64 account key
            container_name: Target container
            endpoint: Optional service URL (defaults to the public endpoint
                of the account, override for emulators)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport, mainly for tests
        """
        if not account_name or not account_key or not container_name:
            raise ConfigError(
                "Storage account, account key and container name are required"
            )
        self.account_name = account_name
        self.container_name = container_name
        self.endpoint = (
            endpoint or f"https://{account_name}.blob.core.windows.net"
        ).rstrip("/")
        self.timeout = timeout
        self._auth = SharedKeyAuth(account_name, account_key)
        self._transport = transport
        self._client: httpx.Client | None = None

    def __enter__(self) -> AzureBlobClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                auth=self._auth,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _blob_url(self, key: str) -> str:
        return f"{self.endpoint}/{self.container_name}/{key.lstrip('/')}"

    def _handle_http_error(self, response: httpx.Response, key: str) -> StorageError:
        """Translate an error response into a storage exception.

        Args:
            response: Response with a non-success status
            key: Blob key or prefix the request was about

        Returns:
            Exception to raise
        """
        status_code = response.status_code
        error_code = response.headers.get("x-ms-error-code")

        if status_code == 404 and error_code in (None, "BlobNotFound"):
            return BlobNotFoundError(key, error_code=error_code)
        if error_code in ("Md5Mismatch", "InvalidMd5"):
            return ChecksumMismatchError(
                f"Checksum rejected for {key}", error_code=error_code
            )
        if status_code in (401, 403):
            return StorageAuthenticationError(
                f"Access denied for account {self.account_name} "
                f"(status {status_code})",
                error_code=error_code,
            )

        error_msg = f"Storage request failed with status {status_code}"
        if error_code:
            error_msg = f"{error_msg}: {error_code}"
        return StorageError(error_msg, error_code=error_code)

    def _request(
        self, method: str, url: str, key: str, **kwargs: Any
    ) -> httpx.Response:
        """Make a single storage request.

        Args:
            method: HTTP method
            url: Absolute request URL
            key: Blob key or prefix, used in error messages
            **kwargs: Additional arguments passed to httpx

        Returns:
            Successful response

        Raises:
            StorageError: If the request fails
        """
        client = self._get_client()
        try:
            response = client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise StorageConnectionError(f"Network error: {e}") from e

        if response.is_error:
            raise self._handle_http_error(response, key)
        return response

    # =========================
    # Blob Operations
    # =========================

    def put(self, key: str, content: bytes, checksum: str | None = None) -> None:
        """Upload a block blob, replacing any existing one.

        Args:
            key: Encoded blob key
            content: Full blob content
            checksum: Optional base64 MD5 of ``content``, verified by the
                service

        Raises:
            ChecksumMismatchError: If the service rejects the checksum
            StorageError: If the upload fails
        """
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "Content-Type": "application/octet-stream",
        }
        if checksum is not None:
            headers["Content-MD5"] = checksum
        self._request("PUT", self._blob_url(key), key, headers=headers, content=content)
        logger.debug("Uploaded %s (%d bytes)", key, len(content))

    def get(self, key: str) -> bytes:
        """Download the content of a blob.

        Raises:
            BlobNotFoundError: If the blob does not exist
        """
        response = self._request("GET", self._blob_url(key), key)
        return response.content

    def delete(self, key: str) -> None:
        """Delete a blob.

        Raises:
            BlobNotFoundError: If the blob does not exist
            StorageError: If the deletion fails for any other reason
        """
        self._request("DELETE", self._blob_url(key), key)
        logger.debug("Deleted %s", key)

    def list(self, prefix: str) -> list[str]:
        """List the names of all blobs starting with a prefix.

        Follows continuation markers until the listing is exhausted.

        Args:
            prefix: Encoded key prefix

        Returns:
            Raw blob names, in service order
        """
        url = f"{self.endpoint}/{self.container_name}"
        params = {"restype": "container", "comp": "list", "prefix": unquote(prefix)}
        names: list[str] = []

        while True:
            response = self._request("GET", url, prefix, params=params)
            try:
                root = ElementTree.fromstring(response.content)
            except ElementTree.ParseError as e:
                raise StorageError("Invalid listing response from server") from e

            for blob in root.iter("Blob"):
                name = blob.findtext("Name")
                if name:
                    names.append(name)

            marker = root.findtext("NextMarker")
            if not marker:
                break
            params = {**params, "marker": marker}

        logger.debug("Listed %d blob(s) under %s", len(names), prefix)
        return names
