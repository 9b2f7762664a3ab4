"""Remote module retrieval.

Downloads the source behind ``loadstring(game:HttpGet(url))()`` calls
using httpx, consulting the fetch cache first.
"""

import logging

import httpx

from lua_bundler.cache import FetchCache
from lua_bundler.exceptions import CacheError, FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class RemoteFetcher:
    """Fetches remote module sources through a cache.

    Attributes:
        cache: Cache consulted before, and updated after, each download
        timeout: Request timeout in seconds

    Example:
        >>> with RemoteFetcher(MemoryCache()) as fetcher:
        ...     source = fetcher.fetch("https://example.com/lib.lua")
    """

    def __init__(
        self,
        cache: FetchCache,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.cache = cache
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self._client

    def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "RemoteFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _cached(self, url: str) -> str | None:
        if not self.cache.is_enabled():
            return None
        try:
            return self.cache.get(url)
        except CacheError as e:
            logger.info(f"Cache read failed for {url}: {e}")
            return None

    def _store(self, url: str, content: str) -> None:
        if not self.cache.is_enabled():
            return
        try:
            self.cache.set(url, content)
        except CacheError as e:
            logger.info(f"Failed to cache {url}: {e}")

    def fetch(self, url: str) -> str:
        """Return the source text behind a URL.

        Args:
            url: Remote module URL

        Returns:
            Response body as text

        Raises:
            FetchError: On transport failure, timeout, or a non-2xx status
        """
        cached = self._cached(url)
        if cached is not None:
            logger.info(f"Using cached: {url}")
            return cached

        logger.info(f"Downloading: {url}")

        try:
            response = self.client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise FetchError(url, f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise FetchError(url, e) from e

        if not response.is_success:
            raise FetchError(url, f"status {response.status_code}", status=response.status_code)

        content = response.text
        self._store(url, content)
        return content
