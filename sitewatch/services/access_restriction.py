"""
Access-Restriction Detection Service.

Detects login walls, error pages and other access-restricted pages so the
crawler can leave them out of generated summaries. A small whitelist of
utility pages (privacy, terms, contact, support) is always kept, since
those pages often mention logins or authorization in their text.
"""

import logging
import re
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class AccessRestrictionDetector:
    """
    Detects pages whose title or text indicates restricted access.
    """

    # Authorization failure patterns
    UNAUTHORIZED_PATTERNS = [
        r"\bunauthori[sz]ed\b",
        r"\b401\b.*\bunauthori[sz]ed\b",
        r"\b403\b\s*[-:]?\s*forbidden\b",
        r"\baccess\s*denied\b",
        r"\bforbidden\b",
        r"\bpermission\s*denied\b",
    ]

    # Login wall patterns
    LOGIN_PATTERNS = [
        r"\blog\s*in\s*required\b",
        r"\blogin\s*required\b",
        r"\bauthentication\s*required\b",
        r"\bsign\s*in\s*to\s*(continue|view|access|read)\b",
        r"\blog\s*in\s*to\s*(continue|view|access|read)\b",
        r"\bplease\s*(log\s*in|login|sign\s*in)\b",
        r"\byou\s*must\s*be\s*logged\s*in\b",
    ]

    # Membership language patterns
    MEMBERSHIP_PATTERNS = [
        r"\bmembers?\s*only\b",
        r"\bsubscription\s*required\b",
        r"\bsubscribers?\s*only\b",
    ]

    # Always-useful utility pages kept regardless of their wording
    WHITELIST_PATTERNS = [
        r"privacy",
        r"terms",
        r"contact",
        r"support",
    ]

    # Only the start of long pages is inspected
    TEXT_SAMPLE_CHARS = 2000

    def __init__(self):
        """Initialize detector with compiled patterns."""
        all_patterns = (
            self.UNAUTHORIZED_PATTERNS +
            self.LOGIN_PATTERNS +
            self.MEMBERSHIP_PATTERNS
        )
        self._compiled_patterns = [
            re.compile(pattern, re.IGNORECASE)
            for pattern in all_patterns
        ]
        self._whitelist_regexes = [
            re.compile(pattern, re.IGNORECASE)
            for pattern in self.WHITELIST_PATTERNS
        ]

    def is_restricted(self, title: Optional[str], text: Optional[str]) -> bool:
        """
        Check if a page's title or text indicates restricted access.

        Args:
            title: Page title
            text: Extracted page text

        Returns:
            True if the page appears to be behind a login or error wall
        """
        sample = f"{title or ''}\n{(text or '')[:self.TEXT_SAMPLE_CHARS]}"
        if not sample.strip():
            return False

        for pattern in self._compiled_patterns:
            if pattern.search(sample):
                logger.debug("Access restriction matched: %s", pattern.pattern)
                return True

        return False

    def is_whitelisted(self, url: str) -> bool:
        """Check if the URL path names an always-kept utility page."""
        path = urlparse(url or "").path
        return any(regex.search(path) for regex in self._whitelist_regexes)

    def should_exclude(self, page) -> bool:
        """
        Decide whether a crawled page is left out of the results.

        Args:
            page: Object with url, title and text attributes

        Returns:
            True if the page is restricted and not whitelisted
        """
        if not self.is_restricted(page.title, page.text):
            return False

        if self.is_whitelisted(page.url):
            logger.debug(f"Keeping whitelisted restricted page {page.url}")
            return False

        logger.info(f"Excluding access-restricted page {page.url}")
        return True
