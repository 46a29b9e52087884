"""Transport for catalog documents and package files.

The repository engine only needs two calls: fetch raw bytes and fetch a
parsed JSON document. HttpFetcher serves both over HTTP(S) with a single
client-level timeout and no retries, and reads absolute local paths
straight from disk so a repository directory can act as a source.
"""

import json
import logging
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol

import httpx

from pkgr.core.errors import InvalidManifestError, NetworkError, NotFoundError

logger = logging.getLogger(__name__)

# Client-level timeout in seconds for every request
DEFAULT_TIMEOUT = 30.0


class Fetcher(Protocol):
    """Transport contract consumed by the repository engine."""

    def fetch_bytes(self, url: str) -> bytes:
        """Return the body at ``url`` or raise a PkgrError."""
        ...

    def fetch_index(self, url: str) -> Any:
        """Return the parsed JSON document at ``url`` or raise a PkgrError."""
        ...


def is_local(url: str) -> bool:
    """True for absolute filesystem paths used as source roots."""
    return url.startswith("/")


def join_url(base: str, *parts: str) -> str:
    """Join a source root and path segments, ignoring trailing slashes on the root."""
    segments = [base.rstrip("/")]
    segments.extend(part.strip("/") for part in parts if part)
    return "/".join(segments)


class HttpFetcher:
    """Fetcher backed by httpx.

    Attributes:
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
        """
        self.timeout = timeout
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def fetch_bytes(self, url: str) -> bytes:
        """Fetch raw bytes.

        Raises:
            NetworkError: On transport failure or a non-2xx response.
            NotFoundError: If a local path does not exist.
        """
        if is_local(url):
            return _read_local(url)

        logger.debug("GET %s", url)
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e) or type(e).__name__) from e
        return response.content

    def fetch_index(self, url: str) -> Any:
        """Fetch and parse a JSON document.

        Raises:
            InvalidManifestError: If the body is not valid JSON.
        """
        body = self.fetch_bytes(url)
        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            msg = f"Invalid JSON document at {url}: {e}"
            raise InvalidManifestError(msg) from e


def _read_local(url: str) -> bytes:
    path = Path(url)
    if not path.is_file():
        msg = f"File not found: {path}"
        raise NotFoundError(msg)
    logger.debug("Reading %s", path)
    return path.read_bytes()
