"""
URL normalization utility functions.

Provides the URL normalization used for crawl deduplication, watch-list
uniqueness and same-site checks. Two URLs that differ only in ways a
browser would ignore (scheme/host case, default port, fragment, tracking
parameters, parameter order, duplicate or trailing slashes) normalize to
the same string.

Normalization Rules:
- Lowercase scheme and host
- Drop default ports (:80 for http, :443 for https)
- Drop fragment
- Remove tracking query parameters (utm_*, fbclid, gclid, ...)
- Sort remaining query parameters
- Collapse duplicate slashes in the path
- Strip trailing slash except for the root path
"""

import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


# Query parameters that never change page content
TRACKING_PARAMS = {
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
    "ref",
}

TRACKING_PREFIXES = ("utm_",)

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered in TRACKING_PARAMS or lowered.startswith(TRACKING_PREFIXES)


def normalize_url(url: str) -> str:
    """
    Normalize a URL for deduplication and comparison.

    Args:
        url: Absolute URL to normalize

    Returns:
        The normalized URL, or an empty string for empty input

    Example:
        >>> normalize_url("HTTPS://Example.com:443//docs//?b=2&a=1&utm_source=x#top")
        'https://example.com/docs?a=1&b=2'
    """
    if not url:
        return ""

    parsed = urlparse(url.strip())

    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()

    try:
        port = parsed.port
    except ValueError:
        port = None

    netloc = host
    if port and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    if parsed.username:
        userinfo = parsed.username
        if parsed.password:
            userinfo += f":{parsed.password}"
        netloc = f"{userinfo}@{netloc}"

    # Collapse duplicate slashes, then strip the trailing one (root stays "/")
    path = re.sub(r"/{2,}", "/", parsed.path or "/")
    if len(path) > 1:
        path = path.rstrip("/") or "/"

    query_pairs = [
        (name, value)
        for name, value in parse_qsl(parsed.query, keep_blank_values=True)
        if not _is_tracking_param(name)
    ]
    query = urlencode(sorted(query_pairs))

    return urlunparse((scheme, netloc, path, "", query, ""))


def is_valid_url(url: str) -> bool:
    """
    Check that a URL is absolute http(s) with a host.

    Args:
        url: URL string to validate

    Returns:
        True if the URL can be crawled
    """
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False

    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def _site_host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def same_site(url_a: str, url_b: str) -> bool:
    """
    Check whether two URLs belong to the same site.

    Hosts are compared case-insensitively, ignoring a leading "www.".

    Example:
        >>> same_site("https://www.example.com/a", "http://example.com/b")
        True
    """
    host_a = _site_host(url_a)
    return bool(host_a) and host_a == _site_host(url_b)
