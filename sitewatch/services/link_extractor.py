"""
Link Extractor Service.

Extracts crawlable links and the canonical-URL hint from HTML content,
and decides which URLs the crawler must never visit.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from sitewatch.utils.normalization import is_valid_url, normalize_url

logger = logging.getLogger(__name__)


class LinkExtractor:
    """
    Extracts links from HTML and applies the crawl skip rules.

    Skipped URLs: binary and download files, admin and login areas,
    search endpoints, carts, feeds, non-HTTP schemes and anchor-only links.
    """

    # Binary/download file extensions (checked against the URL path)
    SKIP_EXTENSIONS = [
        # Images
        "jpg", "jpeg", "png", "gif", "svg", "webp", "ico", "bmp", "tiff", "avif",
        # Media
        "mp3", "mp4", "avi", "mov", "wmv", "flv", "webm", "ogg", "wav", "m4a",
        # Archives
        "zip", "rar", "7z", "tar", "gz", "tgz", "bz2",
        # Documents
        "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "odt", "csv",
        # Executables and packages
        "exe", "dmg", "msi", "apk", "deb", "rpm", "iso", "bin",
        # Fonts
        "woff", "woff2", "ttf", "otf", "eot",
        # Assets
        "css", "js", "json", "xml", "rss", "map",
    ]

    # URLs to skip
    SKIP_PATTERNS = [
        r"^mailto:",
        r"^tel:",
        r"^javascript:",
        r"^data:",
        r"^ftp:",
        r"^#",
        r"/admin(/|$)",
        r"/administrator(/|$)",
        r"/wp-admin",
        r"/wp-login",
        r"/wp-json",
        r"/log-?in(/|$)",
        r"/log-?out(/|$)",
        r"/sign-?in(/|$)",
        r"/sign-?out(/|$)",
        r"/search(/|$)",
        r"[?&](s|q|query|search)=",
        r"/cart(/|$)",
        r"/checkout(/|$)",
        r"/feed(/|$)",
        r"/rss(/|$)",
        r"/atom(/|$)",
    ]

    def __init__(self):
        """Initialize the link extractor."""
        self._skip_regexes = [
            re.compile(p, re.IGNORECASE) for p in self.SKIP_PATTERNS
        ]
        self._extension_regex = re.compile(
            r"\.(" + "|".join(self.SKIP_EXTENSIONS) + r")$",
            re.IGNORECASE,
        )

    def extract_links(self, html: str, base_url: str) -> List[str]:
        """
        Extract absolute, normalized links from HTML content.

        Relative links are resolved against the page URL, or against
        <base href> when present. Order of first appearance is preserved.

        Args:
            html: Raw HTML content
            base_url: URL the HTML was fetched from

        Returns:
            List of normalized http(s) URLs
        """
        if not html:
            return []

        soup = BeautifulSoup(html, "html.parser")

        base_tag = soup.find("base", href=True)
        if base_tag:
            base_url = urljoin(base_url, base_tag["href"].strip())

        links: List[str] = []
        seen_urls = set()

        for anchor in soup.find_all("a", href=True):
            href = anchor.get("href", "").strip()

            # Anchor-only links never leave the page
            if not href or href.startswith("#"):
                continue

            # mailto:, tel:, javascript: etc. fail the http(s) check
            full_url = urljoin(base_url, href)
            if not is_valid_url(full_url):
                continue

            normalized_url = normalize_url(full_url)
            if normalized_url in seen_urls:
                continue
            seen_urls.add(normalized_url)

            links.append(normalized_url)

        logger.debug(f"Extracted {len(links)} links from {base_url}")
        return links

    def extract_canonical_hint(self, html: str, base_url: str) -> Optional[str]:
        """
        Read the <link rel="canonical"> hint, resolved and normalized.

        Returns:
            The canonical URL, or None when absent or not http(s)
        """
        if not html:
            return None

        soup = BeautifulSoup(html, "html.parser")
        for link in soup.find_all("link", href=True):
            rel = link.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "canonical" in [value.lower() for value in rel]:
                canonical = urljoin(base_url, link["href"].strip())
                if is_valid_url(canonical):
                    return normalize_url(canonical)
                return None

        return None

    def should_skip(self, url: str) -> bool:
        """Check if URL should be skipped by the crawler."""
        if not url:
            return True

        if self._matches_skip_pattern(url):
            return True

        if not is_valid_url(url):
            return True

        path = urlparse(url).path
        if self._extension_regex.search(path):
            return True

        return False

    def _matches_skip_pattern(self, url: str) -> bool:
        for regex in self._skip_regexes:
            if regex.search(url):
                return True
        return False


# Singleton instance for convenience
_link_extractor = None


def get_link_extractor() -> LinkExtractor:
    """Get or create the link extractor singleton."""
    global _link_extractor
    if _link_extractor is None:
        _link_extractor = LinkExtractor()
    return _link_extractor


def extract_links(html: str, base_url: str) -> List[str]:
    return get_link_extractor().extract_links(html, base_url)


def extract_canonical_hint(html: str, base_url: str) -> Optional[str]:
    return get_link_extractor().extract_canonical_hint(html, base_url)


def should_skip(url: str) -> bool:
    return get_link_extractor().should_skip(url)
