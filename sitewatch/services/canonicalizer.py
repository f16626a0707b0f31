"""
HTML Canonicalizer Service.

Reduces raw HTML to a stable plain-text form so that content signatures
only change when the visible page content changes. Scripts, styles,
tracking markup, page furniture (navigation, headers, footers, cookie
banners, popups, ads) and unstable attributes are removed before the body
text is extracted and whitespace-normalized.

Usage:
    from sitewatch.services.canonicalizer import canonicalize, content_signature

    text = canonicalize(html)
    signature = content_signature(html)
"""

import hashlib
import logging
import re

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)


# Tags whose content never contributes to visible page text
NOISY_TAGS = [
    "script",
    "style",
    "noscript",
    "iframe",
    "canvas",
    "template",
    "svg",
    "link",
    "meta",
    "source",
    "track",
    "picture",
    "video",
    "audio",
]

# Page furniture removed wholesale
FURNITURE_TAGS = ["nav", "header", "footer"]

# id/class fragments marking popups, consent banners and ads
NOISY_MARKER_PATTERNS = [
    r"cookie",
    r"consent",
    r"banner",
    r"modal",
    r"popup",
    r"advert",
    r"(?:^|[-_\s])ads?(?:[-_\s]|$)",
    r"^ad-",
]

# Attributes that vary between requests without changing content
STRIP_ATTRS = {
    "id",
    "class",
    "style",
    "nonce",
    "integrity",
    "crossorigin",
}

STRIP_ATTR_PREFIXES = ("on", "data-", "aria-")

# Date placeholders (opt-in)
ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}(?:[ T]\d{2}:\d{2}(?::\d{2})?)?\b")
MONTH_DATE_RE = re.compile(
    r"\b(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)\.? \d{1,2}, \d{4}\b",
    re.IGNORECASE,
)
YEAR_RE = re.compile(r"©?\s?\b(?:19|20)\d{2}\b")

WHITESPACE_RE = re.compile(r"\s+")

_noisy_marker_regexes = [re.compile(p, re.IGNORECASE) for p in NOISY_MARKER_PATTERNS]


def _marker_values(tag) -> list:
    values = []
    element_id = tag.get("id")
    if element_id:
        values.append(element_id)
    classes = tag.get("class")
    if classes:
        if isinstance(classes, str):
            classes = classes.split()
        values.extend(classes)
    return values


def _is_noisy_element(tag) -> bool:
    for value in _marker_values(tag):
        for regex in _noisy_marker_regexes:
            if regex.search(value):
                return True
    return False


def _decompose_all(tags) -> None:
    for tag in tags:
        # Children of an already removed parent are decomposed with it
        if tag.decomposed:
            continue
        tag.decompose()


def normalize_text(text: str) -> str:
    """Replace NBSP with a space, collapse whitespace runs and trim."""
    text = text.replace("\u00a0", " ")
    return WHITESPACE_RE.sub(" ", text).strip()


def remove_dates(text: str) -> str:
    """
    Replace obvious dates and years with placeholders.

    ISO dates (with optional time) and "Mon d, yyyy" dates become DATE,
    four-digit years (with an optional copyright sign) become YEAR.
    """
    text = ISO_DATE_RE.sub("DATE", text)
    text = MONTH_DATE_RE.sub("DATE", text)
    return YEAR_RE.sub("YEAR", text)


def canonicalize(raw_html: str, remove_dates_enabled: bool = False) -> str:
    """
    Reduce HTML to stable, whitespace-normalized body text.

    Deterministic: identical input always yields identical output.

    Args:
        raw_html: Raw HTML document
        remove_dates_enabled: Replace obvious dates/years with placeholders

    Returns:
        Canonical plain text (empty string for empty input)
    """
    if not raw_html:
        return ""

    soup = BeautifulSoup(raw_html, "html.parser")

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    _decompose_all(soup.find_all(NOISY_TAGS))
    _decompose_all(soup.find_all(FURNITURE_TAGS))
    _decompose_all(soup.find_all(_is_noisy_element))

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            name = attr.lower()
            if name in STRIP_ATTRS or name.startswith(STRIP_ATTR_PREFIXES):
                del tag.attrs[attr]

    # Body text only; documents without a <body> fall back to everything
    # outside <head>
    container = soup.body
    if container is None:
        if soup.head is not None:
            soup.head.decompose()
        container = soup

    text = normalize_text(container.get_text(" "))
    if remove_dates_enabled:
        text = remove_dates(text)

    return text


def hash_text(text: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def content_signature(raw_html: str, remove_dates_enabled: bool = False) -> str:
    """
    Content signature of an HTML document.

    Returns:
        64-character SHA-256 hex digest of the canonical text
    """
    return hash_text(canonicalize(raw_html, remove_dates_enabled=remove_dates_enabled))
