"""
HTTP Page Fetcher - httpx.

The default fetcher. Uses an async httpx client with a browser User-Agent,
follows redirects and retries transient failures with exponential backoff.
The metadata-only probe issues a HEAD request with its own, shorter
timeout.
"""

import asyncio
import logging
from typing import Dict, Optional

import httpx

from django.conf import settings

from sitewatch.exceptions import FetchError
from sitewatch.fetchers.base import HeaderResult, PageFetcher, RawResult

logger = logging.getLogger(__name__)


class HttpxPageFetcher(PageFetcher):
    """
    Page fetcher using async httpx.

    Features:
    - Async HTTP client with connection pooling
    - Explicit timeouts for page fetches and header probes
    - Exponential backoff retry on timeouts, connection errors and 5xx
    - No retry on 4xx client errors
    """

    # Use a browser User-Agent to avoid bot detection
    # Many sites serve different content or block crawler user agents
    DEFAULT_USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    # Only gzip/deflate: httpx does not decode brotli without extra packages
    DEFAULT_HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
    }

    def __init__(
        self,
        timeout: Optional[float] = None,
        header_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the httpx fetcher.

        Args:
            timeout: Page fetch timeout in seconds (default from settings)
            header_timeout: Header probe timeout in seconds (default from settings)
            max_retries: Maximum attempts for transient failures (default from settings)
            user_agent: Custom User-Agent string
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout or getattr(
            settings, "SITEWATCH_PAGE_FETCH_TIMEOUT", 30
        )
        self.header_timeout = header_timeout or getattr(
            settings, "SITEWATCH_HEADER_PROBE_TIMEOUT", 10
        )
        self.max_retries = max(
            1, max_retries or getattr(settings, "SITEWATCH_MAX_RETRIES", 2)
        )
        self.user_agent = user_agent or self.DEFAULT_USER_AGENT
        self._transport = transport

        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._init_http_client()
        return self

    async def _init_http_client(self):
        """Initialize HTTP client."""
        if self._http_client is None:
            headers = {
                **self.DEFAULT_HEADERS,
                "User-Agent": self.user_agent,
            }

            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                follow_redirects=True,
                transport=self._transport,
            )

    async def close(self):
        """Close HTTP client connection."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_headers(self, url: str) -> HeaderResult:
        """
        Probe response metadata with a HEAD request.

        Raises:
            FetchError: on timeout or transport failure
        """
        if self._http_client is None:
            await self._init_http_client()

        try:
            response = await self._http_client.head(
                url,
                timeout=httpx.Timeout(self.header_timeout),
            )
        except httpx.TimeoutException as e:
            raise FetchError(url, f"Header probe timed out: {e}") from e
        except httpx.HTTPError as e:
            raise FetchError(url, f"Header probe failed: {e}") from e

        return HeaderResult(
            url=str(response.url),
            status_code=response.status_code,
            headers=self._lower_headers(response.headers),
        )

    async def fetch_raw(self, url: str) -> RawResult:
        """
        Fetch the full page body.

        Returns:
            RawResult; unsuccessful results carry the error message
        """
        if self._http_client is None:
            await self._init_http_client()

        try:
            response = await self._fetch_with_retry(url)

            is_success = 200 <= response.status_code < 400
            error_msg = None
            if not is_success:
                error_msg = f"HTTP {response.status_code}"
                logger.warning(f"HTTP {response.status_code} for {url}")

            return RawResult(
                url=url,
                final_url=str(response.url),
                status_code=response.status_code,
                headers=self._lower_headers(response.headers),
                html=response.text if is_success else "",
                success=is_success,
                error=error_msg,
            )

        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {url}: {e}")
            return self._failed(url, f"Timeout: {e}")

        except httpx.HTTPStatusError as e:
            logger.warning(f"HTTP error for {url}: {e.response.status_code}")
            return self._failed(
                url, f"HTTP {e.response.status_code}", e.response.status_code
            )

        except httpx.HTTPError as e:
            logger.warning(f"Error fetching {url}: {e}")
            return self._failed(url, str(e) or e.__class__.__name__)

    async def _fetch_with_retry(self, url: str) -> httpx.Response:
        """
        Fetch with exponential backoff retry logic.

        Uses exponential backoff on transient failures.
        """
        last_error = None

        for attempt in range(self.max_retries):
            try:
                response = await self._http_client.get(url)

                # Don't retry on 4xx client errors
                if 400 <= response.status_code < 500:
                    return response

                response.raise_for_status()
                return response

            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    f"Timeout fetching {url} (attempt {attempt + 1}/{self.max_retries})"
                )

            except httpx.HTTPStatusError as e:
                last_error = e
                logger.warning(
                    f"HTTP error {e.response.status_code} for {url} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )

            except httpx.HTTPError as e:
                last_error = e
                logger.warning(
                    f"Error fetching {url}: {e} (attempt {attempt + 1}/{self.max_retries})"
                )

            # Exponential backoff
            if attempt < self.max_retries - 1:
                delay = 2 ** attempt
                await asyncio.sleep(delay)

        # All retries exhausted
        raise last_error

    @staticmethod
    def _lower_headers(headers: httpx.Headers) -> Dict[str, str]:
        return {key.lower(): value for key, value in headers.items()}

    @staticmethod
    def _failed(url: str, error: str, status_code: int = 0) -> RawResult:
        return RawResult(
            url=url,
            final_url=url,
            status_code=status_code,
            headers={},
            html="",
            success=False,
            error=error,
        )
