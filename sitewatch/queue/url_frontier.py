"""
URL Frontier - in-memory breadth-first queue for one crawl run.

Implements the work queue shared by the crawl workers of a single run:
- FIFO ordering, so pages are visited breadth-first
- URL deduplication via a seen set of normalized URLs
- Page deduplication by canonical URL (first seen wins)
- Page budget (max_pages results) and fetch budget (max_attempts fetches)
- Depth cap: links are only enqueued from pages shallower than max_depth

All state is guarded by one asyncio.Condition so concurrent workers see a
consistent view. A frontier belongs to exactly one crawl run and is
discarded when the run ends.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sitewatch.utils.normalization import normalize_url

logger = logging.getLogger(__name__)


@dataclass
class FrontierEntry:
    """A URL waiting to be fetched."""

    url: str
    depth: int
    order: int


class URLFrontier:
    """
    Breadth-first URL frontier with budgets and deduplication.

    Workers loop on next_entry() until it returns None, and report each
    fetched entry back with complete().
    """

    def __init__(self, max_pages: int, max_depth: int, max_attempts: Optional[int] = None):
        """
        Initialize the frontier.

        Args:
            max_pages: Maximum number of pages recorded
            max_depth: Deepest level at which pages are fetched
            max_attempts: Maximum number of fetches handed out
                (default: max_pages)
        """
        self.max_pages = max_pages
        self.max_depth = max_depth
        self.max_attempts = max_attempts if max_attempts is not None else max_pages

        self._queue: deque = deque()
        self._seen: set = set()
        self._pages: Dict[str, Any] = {}
        self._page_order: Dict[str, tuple] = {}
        self._order = 0
        self._in_flight = 0
        self.fetch_attempts = 0

        self._condition = asyncio.Condition()

    def _enqueue(self, url: str, depth: int) -> bool:
        normalized = normalize_url(url)
        if not normalized or normalized in self._seen:
            return False

        self._seen.add(normalized)
        self._queue.append(FrontierEntry(url=normalized, depth=depth, order=self._order))
        self._order += 1
        return True

    def _exhausted(self) -> bool:
        return (
            len(self._pages) >= self.max_pages
            or self.fetch_attempts >= self.max_attempts
        )

    async def seed(self, url: str) -> bool:
        """Add the start URL at depth 0."""
        async with self._condition:
            added = self._enqueue(url, 0)
            self._condition.notify_all()
            return added

    async def next_entry(self) -> Optional[FrontierEntry]:
        """
        Hand out the next URL to fetch.

        Waits while the queue is empty but other workers are still fetching
        (they may enqueue more links).

        Returns:
            The next entry, or None when the crawl is finished
        """
        async with self._condition:
            while True:
                if self._exhausted():
                    return None

                if self._queue:
                    entry = self._queue.popleft()
                    self._in_flight += 1
                    self.fetch_attempts += 1
                    return entry

                if self._in_flight == 0:
                    return None

                await self._condition.wait()

    async def complete(
        self,
        entry: FrontierEntry,
        canonical_url: Optional[str] = None,
        page: Any = None,
        links: Iterable[str] = (),
    ) -> bool:
        """
        Report a fetched entry back to the frontier.

        Args:
            entry: The entry returned by next_entry()
            canonical_url: Canonical URL of the page, if it is to be recorded
            page: The page object to record (None for failed/excluded pages)
            links: Outbound links to enqueue at entry.depth + 1

        Returns:
            True if the page was recorded
        """
        async with self._condition:
            self._in_flight -= 1
            recorded = False

            if page is not None and canonical_url:
                # Later fetches of the canonical URL itself are pointless
                self._seen.add(canonical_url)
                if canonical_url in self._pages:
                    logger.debug(
                        f"Dropping duplicate of {canonical_url} found at {entry.url}"
                    )
                elif len(self._pages) < self.max_pages:
                    self._pages[canonical_url] = page
                    self._page_order[canonical_url] = (entry.depth, entry.order)
                    recorded = True

            if entry.depth < self.max_depth:
                for link in links:
                    self._enqueue(link, entry.depth + 1)

            self._condition.notify_all()
            return recorded

    def pages(self) -> List[Any]:
        """Recorded pages ordered by (depth, discovery order)."""
        ordered = sorted(self._pages, key=lambda url: self._page_order[url])
        return [self._pages[url] for url in ordered]

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def queued_count(self) -> int:
        return len(self._queue)
