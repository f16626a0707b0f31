"""
Site Crawler Service.

Breadth-first crawl of one site, starting at a URL and following same-site
links up to a depth and page budget. Several workers fetch concurrently and
share one URLFrontier, which owns the queue, the seen set and the recorded
pages for the run.

Usage:
    crawler = SiteCrawler()
    result = await crawler.crawl("https://example.com", max_pages=20, max_depth=2)
    for page in result.pages:
        print(page.url, page.title)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.conf import settings

from sitewatch.fetchers import PageFetcher, get_page_fetcher
from sitewatch.queue.url_frontier import FrontierEntry, URLFrontier
from sitewatch.services.access_restriction import AccessRestrictionDetector
from sitewatch.services.link_extractor import LinkExtractor, get_link_extractor
from sitewatch.utils.normalization import normalize_url, same_site

logger = logging.getLogger(__name__)


@dataclass
class CrawledPage:
    """A page recorded by a crawl run, keyed by its canonical URL."""

    url: str
    requested_url: str
    title: str = ""
    description: str = ""
    text: str = ""
    links: List[str] = field(default_factory=list)
    depth: int = 0
    success: bool = True
    error: Optional[str] = None


@dataclass
class CrawlResult:
    """Outcome of one crawl run."""

    start_url: str
    pages: List[CrawledPage] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)
    fetch_attempts: int = 0
    duration_seconds: float = 0.0
    excluded_count: int = 0

    @property
    def page_count(self) -> int:
        return len(self.pages)


class SiteCrawler:
    """
    Concurrent breadth-first site crawler.

    Page fetch failures are recorded in CrawlResult.errors and never abort
    the run. Access-restricted pages are left out of the results unless
    they are whitelisted utility pages.
    """

    def __init__(
        self,
        fetcher: Optional[PageFetcher] = None,
        concurrency: Optional[int] = None,
        budget_multiplier: Optional[int] = None,
        restriction_detector: Optional[AccessRestrictionDetector] = None,
        link_extractor: Optional[LinkExtractor] = None,
    ):
        """
        Initialize the crawler.

        Args:
            fetcher: Page fetcher to use; when omitted one is built per run
                from settings and closed afterwards
            concurrency: Number of concurrent fetch workers
            budget_multiplier: Fetch attempts allowed per result page
            restriction_detector: Detector for login/error walls
            link_extractor: Skip-rule source
        """
        self.fetcher = fetcher
        self.concurrency = concurrency or getattr(
            settings, "SITEWATCH_CRAWL_CONCURRENCY", 5
        )
        self.budget_multiplier = budget_multiplier or getattr(
            settings, "SITEWATCH_CRAWL_BUDGET_MULTIPLIER", 2
        )
        self.restriction_detector = restriction_detector or AccessRestrictionDetector()
        self.link_extractor = link_extractor or get_link_extractor()

    async def crawl(
        self,
        start_url: str,
        max_pages: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> CrawlResult:
        """
        Crawl a site breadth-first.

        Args:
            start_url: URL to start from (depth 0)
            max_pages: Maximum pages in the result
            max_depth: Maximum link depth from the start URL

        Returns:
            CrawlResult with pages ordered by (depth, discovery order)
        """
        if max_pages is None:
            max_pages = getattr(settings, "SITEWATCH_CRAWL_MAX_PAGES", 50)
        if max_depth is None:
            max_depth = getattr(settings, "SITEWATCH_CRAWL_MAX_DEPTH", 3)

        start_url = normalize_url(start_url)
        result = CrawlResult(start_url=start_url)
        started = time.monotonic()

        frontier = URLFrontier(
            max_pages=max_pages,
            max_depth=max_depth,
            max_attempts=max_pages * self.budget_multiplier,
        )
        await frontier.seed(start_url)

        owns_fetcher = self.fetcher is None
        fetcher = self.fetcher or get_page_fetcher()

        logger.info(
            f"Crawl started for {start_url} "
            f"(max_pages={max_pages}, max_depth={max_depth}, workers={self.concurrency})"
        )

        try:
            workers = [
                asyncio.create_task(self._worker(frontier, fetcher, start_url, result))
                for _ in range(max(1, self.concurrency))
            ]
            await asyncio.gather(*workers)
        finally:
            if owns_fetcher:
                await fetcher.close()

        result.pages = frontier.pages()
        result.fetch_attempts = frontier.fetch_attempts
        result.duration_seconds = time.monotonic() - started

        logger.info(
            f"Crawl finished for {start_url}: {result.page_count} pages, "
            f"{len(result.errors)} errors, {result.fetch_attempts} fetches "
            f"in {result.duration_seconds:.1f}s"
        )
        return result

    async def _worker(
        self,
        frontier: URLFrontier,
        fetcher: PageFetcher,
        start_url: str,
        result: CrawlResult,
    ):
        while True:
            entry = await frontier.next_entry()
            if entry is None:
                return

            page = None
            canonical_url = None
            links: List[str] = []

            try:
                page, links = await self._visit(fetcher, entry, start_url, result)
                if page is not None:
                    canonical_url = page.url
            except Exception as e:
                logger.warning(f"Failed to crawl {entry.url}: {e}")
                result.errors.append({"url": entry.url, "error": str(e)})
            finally:
                await frontier.complete(entry, canonical_url, page, links)

    async def _visit(self, fetcher: PageFetcher, entry: FrontierEntry, start_url: str, result: CrawlResult):
        """Fetch one entry; returns (page or None, links to enqueue)."""
        if self.link_extractor.should_skip(entry.url):
            logger.debug(f"Skipping {entry.url}")
            return None, []

        fetched = await fetcher.fetch(entry.url)
        if not fetched.success:
            logger.warning(f"Page fetch failed for {entry.url}: {fetched.error}")
            result.errors.append({"url": entry.url, "error": fetched.error or "Unknown error"})
            return None, []

        canonical_url = fetched.canonical_url or normalize_url(fetched.final_url or entry.url)

        links = [
            link for link in fetched.links
            if same_site(start_url, link) and not self.link_extractor.should_skip(link)
        ]

        page = CrawledPage(
            url=canonical_url,
            requested_url=entry.url,
            title=fetched.title,
            description=fetched.description,
            text=fetched.text,
            links=links,
            depth=entry.depth,
        )

        if self.restriction_detector.should_exclude(page):
            result.excluded_count += 1
            return None, links

        return page, links


async def crawl(start_url: str, max_pages: Optional[int] = None, max_depth: Optional[int] = None) -> CrawlResult:
    """Crawl a site with a crawler built from settings."""
    return await SiteCrawler().crawl(start_url, max_pages=max_pages, max_depth=max_depth)
