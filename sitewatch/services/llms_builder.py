"""
llms.txt Builder Service.

Renders crawled pages into the two generated files:

- llms.txt: site heading, one-line description, and one section per
  category listing "- [title](url): description" entries
- llms-full.txt: the full extracted text of every page

Utility and error pages (404s, search, sitemaps, static assets, binary
documents) are left out of the index.
"""

import logging
import re
from typing import Dict, List, Sequence
from urllib.parse import urlparse

from sitewatch.services.summarizer import DEFAULT_CATEGORY, PageSummary

logger = logging.getLogger(__name__)


LLMS_FILE = "llms.txt"
LLMS_FULL_FILE = "llms-full.txt"

# Section order in llms.txt; unknown categories follow in first-seen order
CATEGORY_ORDER = [
    "Blog",
    "Guides",
    "Features",
    "Products",
    "Services",
    "Customers",
    "About",
    "Careers",
    "Support",
    "Documentation",
    "Pricing",
    "Contact",
    "Login",
    "Registration",
    "Privacy Policy",
    "Terms",
    "General",
]

EXCLUDE_PATTERNS = [
    r"/404",
    r"/error",
    r"/search$",
    r"/thank-you",
    r"/confirmation",
    r"/unsubscribe",
    r"/sitemap",
    r"/robots\.txt",
    r"/admin",
    r"/wp-",
    r"/assets/",
    r"/static/",
    r"/images/",
    r"/css/",
    r"/js/",
    r"\.(pdf|doc|docx|xls|xlsx|zip|rar)$",
]


class LlmsTxtBuilder:
    """Builds llms.txt and llms-full.txt from crawled pages."""

    def __init__(self):
        self._exclude_regexes = [
            re.compile(p, re.IGNORECASE) for p in EXCLUDE_PATTERNS
        ]

    def should_exclude(self, url: str) -> bool:
        return any(regex.search(url) for regex in self._exclude_regexes)

    def build(
        self,
        domain: str,
        site_description: str,
        pages: Sequence,
        summaries: Sequence[PageSummary],
    ) -> str:
        """
        Render llms.txt.

        Args:
            domain: Site host name used as the heading
            site_description: One-line description of the site
            pages: Crawled pages (url, title attributes)
            summaries: One PageSummary per page, same order

        Returns:
            The llms.txt content
        """
        grouped: Dict[str, List[dict]] = {}

        for page, summary in zip(pages, summaries):
            if self.should_exclude(page.url):
                logger.debug(f"Excluding {page.url} from llms.txt")
                continue
            if not page.title or not summary.description:
                continue

            category = summary.category or DEFAULT_CATEGORY
            grouped.setdefault(category, []).append({
                "title": page.title,
                "url": page.url,
                "description": summary.description,
                "path": urlparse(page.url).path or "/",
            })

        # Shallow paths first, then alphabetical
        for entries in grouped.values():
            entries.sort(key=lambda e: (len(e["path"].split("/")), e["path"]))

        lines = [f"# {domain}", "", f"> {site_description}", ""]

        ordered = [c for c in CATEGORY_ORDER if c in grouped]
        ordered += [c for c in grouped if c not in CATEGORY_ORDER]

        for category in ordered:
            lines.append(f"## {category}")
            lines.append("")
            for entry in grouped[category]:
                lines.append(f"- [{entry['title']}]({entry['url']}): {entry['description']}")
            lines.append("")

        return "\n".join(lines).strip() + "\n"

    def build_full(self, domain: str, pages: Sequence) -> str:
        """Render llms-full.txt with the full text of every page."""
        lines = [f"# {domain} - Full Content", ""]

        for index, page in enumerate(pages, start=1):
            if not (page.text or "").strip():
                continue
            lines.append(f"## {page.title or f'Page {index}'}")
            lines.append(f"URL: {page.url}")
            lines.append("")
            lines.append(page.text)
            lines.append("")
            lines.append("---")
            lines.append("")

        return "\n".join(lines).strip() + "\n"
