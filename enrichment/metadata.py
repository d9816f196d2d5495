"""IPFS metadata fetcher for newly created tokens."""

import logging
from typing import Optional

import httpx

from core.errors import FetchError
from core.retry import retry
from models.events import TokenMetadata

logger = logging.getLogger(__name__)

IPFS_MARKER = "ipfs.io/ipfs/"
DEFAULT_GATEWAY = "https://ipfs.io/ipfs/"


def gateway_url(uri: str, gateway: str = DEFAULT_GATEWAY) -> str:
    """
    Map a token URI onto the gateway.

    Everything after the first `ipfs.io/ipfs/` marker is appended to the
    gateway prefix.

    Raises:
        FetchError: if the URI has no marker or nothing after it
    """
    if not isinstance(uri, str):
        raise FetchError(f"Metadata URI is not a string: {uri!r}", uri=None, retryable=False)

    _, marker, suffix = uri.partition(IPFS_MARKER)
    if not marker or not suffix:
        raise FetchError(f"No IPFS path in metadata URI: {uri}", uri=uri, retryable=False)

    return f"{gateway.rstrip('/')}/{suffix}"


class MetadataFetcher:
    """
    Resolves token metadata documents through an IPFS gateway.

    Each attempt is capped by `timeout`; attempts are retried with the
    standard backoff policy. Lifecycle follows start()/stop().
    """

    def __init__(
        self,
        gateway: str = DEFAULT_GATEWAY,
        timeout: float = 10.0,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.gateway = gateway
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._http_client = http_client
        self._owns_client = http_client is None

        # Stats
        self._fetched = 0
        self._errors = 0

    async def start(self):
        """Start the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True
        logger.info("Metadata fetcher started")

    async def stop(self):
        """Stop the HTTP client."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Metadata fetcher stopped")

    async def _fetch_once(self, url: str, uri: str) -> TokenMetadata:
        try:
            response = await self._http_client.get(url, timeout=self.timeout)
            response.raise_for_status()
            document = response.json()
        except httpx.InvalidURL as e:
            raise FetchError(f"Invalid metadata URL {url!r}: {e}", uri=uri, retryable=False) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Metadata request failed for {url}: {e}", uri=uri) from e
        except ValueError as e:
            raise FetchError(f"Metadata at {url} is not JSON: {e}", uri=uri) from e

        if not isinstance(document, dict):
            raise FetchError(f"Metadata at {url} is not a JSON object", uri=uri, retryable=False)

        return TokenMetadata.from_document(document)

    async def fetch(self, uri: str) -> TokenMetadata:
        """
        Fetch and decode the metadata document behind `uri`.

        Raises:
            FetchError: on a malformed URI or once retries are exhausted
        """
        if self._http_client is None:
            raise FetchError("Metadata fetcher not started", uri=uri, retryable=False)

        url = gateway_url(uri, self.gateway)

        try:
            metadata = await retry(
                lambda: self._fetch_once(url, uri),
                max_retries=self.max_retries,
                initial_delay=self.initial_delay,
                max_delay=self.max_delay,
                should_retry=lambda e: getattr(e, "retryable", True),
            )
        except FetchError:
            self._errors += 1
            raise

        self._fetched += 1
        logger.debug(f"Fetched metadata from {url}")
        return metadata

    def get_stats(self) -> dict:
        """Get fetcher statistics."""
        return {
            "fetched": self._fetched,
            "errors": self._errors,
        }
