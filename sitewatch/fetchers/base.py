"""
Page Fetcher contract.

Every fetcher returns the same result types so the crawler and change
detector can run against any rendering engine:

- fetch(url) -> PageResult: full page, parsed (title, description, text,
  links, canonical hint)
- fetch_raw(url) -> RawResult: full page body, unparsed
- fetch_headers(url) -> HeaderResult: metadata-only probe; raises FetchError
  on transport failure so callers can fall through to a full fetch

fetch() and fetch_raw() never raise on transport failures; they return an
unsuccessful result with the error message set.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from sitewatch.services.canonicalizer import normalize_text
from sitewatch.services.link_extractor import get_link_extractor

logger = logging.getLogger(__name__)


@dataclass
class HeaderResult:
    """Response metadata from a metadata-only probe."""

    url: str
    status_code: int
    headers: Dict[str, str]


@dataclass
class RawResult:
    """Unparsed response from a full fetch."""

    url: str
    final_url: str
    status_code: int
    headers: Dict[str, str]
    html: str
    success: bool
    error: Optional[str] = None


@dataclass
class PageResult:
    """Parsed response from a full fetch."""

    url: str
    final_url: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    html: str = ""
    text: str = ""
    title: str = ""
    description: str = ""
    links: List[str] = field(default_factory=list)
    canonical_url: Optional[str] = None
    success: bool = True
    error: Optional[str] = None


# Removed before the readable page text is taken
TEXT_NOISE_TAGS = ["script", "style", "noscript", "template", "svg", "iframe"]


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return normalize_text(tag["content"])
    return ""


def parse_page(raw: RawResult) -> PageResult:
    """
    Turn a raw response into a PageResult.

    Links and the canonical hint are resolved against the final URL after
    redirects. Unsuccessful responses are passed through without parsing.
    """
    if not raw.success:
        return PageResult(
            url=raw.url,
            final_url=raw.final_url,
            status_code=raw.status_code,
            headers=raw.headers,
            success=False,
            error=raw.error,
        )

    extractor = get_link_extractor()
    base_url = raw.final_url or raw.url

    links = extractor.extract_links(raw.html, base_url)
    canonical_url = extractor.extract_canonical_hint(raw.html, base_url)

    soup = BeautifulSoup(raw.html or "", "html.parser")

    title = ""
    if soup.title and soup.title.string:
        title = normalize_text(soup.title.string)
    if not title:
        title = _meta_content(soup, property="og:title")
    if not title:
        heading = soup.find("h1")
        if heading:
            title = normalize_text(heading.get_text(" "))

    description = (
        _meta_content(soup, name="description")
        or _meta_content(soup, property="og:description")
    )

    for tag in soup.find_all(TEXT_NOISE_TAGS):
        tag.decompose()
    container = soup.body or soup
    text = normalize_text(container.get_text(" "))

    return PageResult(
        url=raw.url,
        final_url=base_url,
        status_code=raw.status_code,
        headers=raw.headers,
        html=raw.html,
        text=text,
        title=title,
        description=description,
        links=links,
        canonical_url=canonical_url,
        success=True,
    )


class PageFetcher(ABC):
    """
    Base class for page fetchers.

    Subclasses implement fetch_raw, fetch_headers and close; fetch parses
    the raw response with the shared HTML routine.
    """

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def fetch(self, url: str) -> PageResult:
        """Fetch and parse a page."""
        raw = await self.fetch_raw(url)
        return parse_page(raw)

    @abstractmethod
    async def fetch_raw(self, url: str) -> RawResult:
        """Fetch the full page body without parsing it."""

    @abstractmethod
    async def fetch_headers(self, url: str) -> HeaderResult:
        """Fetch response metadata only. Raises FetchError on failure."""

    @abstractmethod
    async def close(self):
        """Release network resources."""
