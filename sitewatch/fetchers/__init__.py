"""
Page fetchers.

HttpxPageFetcher is the default; PlaywrightPageFetcher renders JavaScript
heavy sites. The class used by the crawler and change detector is chosen
with the SITEWATCH_PAGE_FETCHER_CLASS setting.
"""

from django.conf import settings
from django.utils.module_loading import import_string

from .base import HeaderResult, PageFetcher, PageResult, RawResult, parse_page
from .httpx_fetcher import HttpxPageFetcher
from .playwright_fetcher import PlaywrightPageFetcher


def get_page_fetcher(**kwargs) -> PageFetcher:
    """Build the configured page fetcher."""
    fetcher_class = import_string(
        getattr(
            settings,
            "SITEWATCH_PAGE_FETCHER_CLASS",
            "sitewatch.fetchers.httpx_fetcher.HttpxPageFetcher",
        )
    )
    return fetcher_class(**kwargs)


__all__ = [
    "HeaderResult",
    "HttpxPageFetcher",
    "PageFetcher",
    "PageResult",
    "PlaywrightPageFetcher",
    "RawResult",
    "get_page_fetcher",
    "parse_page",
]
