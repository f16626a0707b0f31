"""
Page Summarizer Service.

Describes and categorizes crawled pages for the llms.txt index. The
summarizer is pluggable through SITEWATCH_SUMMARIZER_CLASS so an AI-backed
implementation can replace the default heuristic one without touching the
generation pipeline.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence
from urllib.parse import urlparse

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


# Path fragment -> category, first match wins
CATEGORY_RULES = [
    (("/blog",), "Blog"),
    (("/guide", "/tutorial"), "Guides"),
    (("/feature", "/product"), "Features"),
    (("/about",), "About"),
    (("/contact",), "Contact"),
    (("/customer", "/case-stud"), "Customers"),
    (("/career", "/job"), "Careers"),
    (("/pricing",), "Pricing"),
    (("/login", "/signin"), "Login"),
    (("/signup", "/register"), "Registration"),
    (("/privacy",), "Privacy Policy"),
    (("/terms",), "Terms"),
    (("/help", "/support"), "Support"),
    (("/api", "/docs"), "Documentation"),
]

DEFAULT_CATEGORY = "General"


@dataclass
class PageSummary:
    """Description and category of one page."""

    description: str
    category: str = DEFAULT_CATEGORY


def infer_category(url: str) -> str:
    """Infer a page category from its URL path."""
    path = urlparse(url).path.lower()
    for fragments, category in CATEGORY_RULES:
        if any(fragment in path for fragment in fragments):
            return category
    return DEFAULT_CATEGORY


def truncate_at_sentence(text: str, max_length: int = 500) -> str:
    """
    Shorten text to max_length, preferring a sentence boundary.

    Cuts at the last full stop when it falls in the second half of the
    window, otherwise hard-truncates with an ellipsis.
    """
    if not text or len(text) <= max_length:
        return text or ""

    truncated = text[:max_length]
    last_sentence = truncated.rfind(".")
    if last_sentence > max_length * 0.5:
        return truncated[:last_sentence + 1]
    return truncated[:max_length - 3] + "..."


class PageSummarizer(ABC):
    """Interface for page summarizers."""

    @abstractmethod
    def summarize(self, page) -> PageSummary:
        """Describe and categorize one crawled page."""

    @abstractmethod
    def describe_site(self, domain: str, pages: Sequence) -> str:
        """One-line description of the whole site."""


class HeuristicSummarizer(PageSummarizer):
    """
    Summarizer that needs no external service.

    Uses the page's meta description when present, otherwise the opening
    sentences of its text; categories come from the URL path.
    """

    def __init__(self, max_description_length: int = 200):
        self.max_description_length = max_description_length

    def summarize(self, page) -> PageSummary:
        description = page.description or truncate_at_sentence(
            page.text, self.max_description_length
        )
        if not description:
            category = infer_category(page.url)
            description = (
                f"{page.title} - {category} content and information"
                if page.title else "Information and resources"
            )

        return PageSummary(
            description=truncate_at_sentence(description, self.max_description_length),
            category=infer_category(page.url),
        )

    def describe_site(self, domain: str, pages: Sequence) -> str:
        # The shallowest page is normally the home page
        for page in sorted(pages, key=lambda p: p.depth):
            if page.description:
                return truncate_at_sentence(page.description, 300)
            if page.text:
                return truncate_at_sentence(page.text, 300)
        return f"{domain} - Information and resources"


def get_summarizer() -> PageSummarizer:
    """Build the configured summarizer."""
    summarizer_class = import_string(
        getattr(
            settings,
            "SITEWATCH_SUMMARIZER_CLASS",
            "sitewatch.services.summarizer.HeuristicSummarizer",
        )
    )
    return summarizer_class()


def summarize_pages(summarizer: PageSummarizer, pages: Sequence) -> List[PageSummary]:
    """Summarize every page, falling back to heuristics for pages that fail."""
    fallback = HeuristicSummarizer()
    summaries = []
    for page in pages:
        try:
            summaries.append(summarizer.summarize(page))
        except Exception as e:
            logger.warning(f"Summarizer failed for {page.url}: {e}")
            summaries.append(fallback.summarize(page))
    return summaries
