"""
Rendering Page Fetcher - Playwright headless browser.

Used for sites whose content only appears after JavaScript runs. Pages are
rendered in headless Chromium; metadata probes and raw change-detection
fetches are delegated to the httpx fetcher since they do not need
rendering.
"""

import logging
from typing import Optional

from django.conf import settings

from sitewatch.fetchers.base import HeaderResult, PageFetcher, RawResult
from sitewatch.fetchers.httpx_fetcher import HttpxPageFetcher

logger = logging.getLogger(__name__)


class PlaywrightPageFetcher(PageFetcher):
    """
    Page fetcher using a Playwright headless browser.

    Features:
    - Lazy Playwright initialization (started on first rendered fetch)
    - One browser per fetcher, one context per page
    - httpx for header probes and raw fetches
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        http_fetcher: Optional[HttpxPageFetcher] = None,
    ):
        """
        Initialize the rendering fetcher.

        Args:
            timeout: Page load timeout in seconds
            http_fetcher: Fetcher used for metadata probes
        """
        self.timeout = timeout or getattr(
            settings, "SITEWATCH_PAGE_FETCH_TIMEOUT", 30
        )
        self._http_fetcher = http_fetcher or HttpxPageFetcher()

        self._playwright = None
        self._browser = None

    async def _init_playwright(self):
        """Initialize Playwright browser (lazy loading)."""
        if self._browser is not None:
            return

        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=True,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--no-sandbox",
                "--disable-dev-shm-usage",
            ],
        )
        logger.info("Playwright browser initialized for rendered fetching")

    async def close(self):
        """Close browser, Playwright instance and the httpx client."""
        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        await self._http_fetcher.close()

    async def fetch_headers(self, url: str) -> HeaderResult:
        return await self._http_fetcher.fetch_headers(url)

    async def fetch_raw(self, url: str) -> RawResult:
        """
        Render a page in the browser and return its HTML.

        Returns:
            RawResult with the rendered DOM; unsuccessful on any browser error
        """
        await self._init_playwright()

        context = await self._browser.new_context(
            user_agent=HttpxPageFetcher.DEFAULT_USER_AGENT,
        )

        try:
            page = await context.new_page()

            try:
                response = await page.goto(
                    url,
                    wait_until="networkidle",
                    timeout=self.timeout * 1000,
                )

                # Wait for content to stabilize
                await page.wait_for_load_state("domcontentloaded")

                content = await page.content()
                status_code = response.status if response else 200
                headers = (
                    {k.lower(): v for k, v in response.headers.items()}
                    if response else {}
                )
                is_success = 200 <= status_code < 400

                return RawResult(
                    url=url,
                    final_url=page.url or url,
                    status_code=status_code,
                    headers=headers,
                    html=content if is_success else "",
                    success=is_success,
                    error=None if is_success else f"HTTP {status_code}",
                )

            except Exception as e:
                logger.warning(f"Rendered fetch failed for {url}: {e}")
                return RawResult(
                    url=url,
                    final_url=url,
                    status_code=0,
                    headers={},
                    html="",
                    success=False,
                    error=str(e),
                )

            finally:
                await page.close()

        finally:
            await context.close()
