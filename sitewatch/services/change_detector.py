"""
Change Detector Service.

Decides whether a watched URL changed since its last check using two
tiers, tried in order:

1. Header probe: a HEAD request; the signature is built from whichever of
   ETag, Last-Modified and Content-Length the server sends. No usable
   headers, a non-2xx status, a timeout or a transport error makes the
   tier inconclusive.
2. Content hash: a full GET, canonicalized and hashed with SHA-256.

Signatures from different tiers are never compared. When the tier that
answers differs from the tier of the stored signature, the check reports
no change and returns the new signature so the caller re-baselines.
When both tiers fail the detector fails closed: no change, previous
signature kept.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sitewatch.exceptions import FetchError
from sitewatch.fetchers import PageFetcher, get_page_fetcher
from sitewatch.models import SignatureMethod, classify_signature
from sitewatch.services.canonicalizer import content_signature

logger = logging.getLogger(__name__)


# Headers used for the metadata signature, in signature order
SIGNATURE_HEADERS = ["etag", "last-modified", "content-length"]

SIGNATURE_SEPARATOR = "|"


@dataclass
class DetectionResult:
    """Outcome of one change check."""

    changed: bool
    signature: Optional[str]
    method: str
    error: Optional[str] = None


def header_signature(headers: dict) -> Optional[str]:
    """
    Build a metadata signature from response headers.

    Returns:
        e.g. 'etag="abc"|last-modified=Tue, 01 Jan 2030 00:00:00 GMT',
        or None when none of the headers are present
    """
    lowered = {key.lower(): value for key, value in (headers or {}).items()}
    parts = []
    for header in SIGNATURE_HEADERS:
        value = (lowered.get(header) or "").strip()
        if value:
            parts.append(f"{header}={value}")

    if not parts:
        return None
    return SIGNATURE_SEPARATOR.join(parts)


class ChangeDetector:
    """
    Two-tier change detector.

    The fetcher is injected; when omitted one is built from settings on
    first use.
    """

    def __init__(self, fetcher: Optional[PageFetcher] = None, remove_dates: bool = False):
        self._fetcher = fetcher
        self.remove_dates = remove_dates

    @property
    def fetcher(self) -> PageFetcher:
        if self._fetcher is None:
            self._fetcher = get_page_fetcher()
        return self._fetcher

    async def close(self):
        if self._fetcher is not None:
            await self._fetcher.close()

    async def probe_headers(self, url: str) -> Optional[str]:
        """Tier 1. Returns a header signature or None when inconclusive."""
        try:
            probe = await self.fetcher.fetch_headers(url)
        except FetchError as e:
            logger.info(f"Header probe inconclusive for {url}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Header probe for {url} raised {e.__class__.__name__}: {e}")
            return None

        if not 200 <= probe.status_code < 300:
            logger.info(f"Header probe for {url} returned HTTP {probe.status_code}")
            return None

        return header_signature(probe.headers)

    async def hash_content(self, url: str) -> Optional[str]:
        """Tier 2. Returns a content signature or None on fetch or parse failure."""
        try:
            raw = await self.fetcher.fetch_raw(url)
            if not raw.success:
                logger.warning(f"Content fetch failed for {url}: {raw.error}")
                return None
            return content_signature(raw.html, remove_dates_enabled=self.remove_dates)
        except Exception as e:
            logger.warning(f"Content hash for {url} raised {e.__class__.__name__}: {e}")
            return None

    async def signature_for(self, url: str, method: str) -> Optional[str]:
        """
        Compute a signature with one specific tier.

        Used after a generation so the stored signature comes from the same
        tier that made the change decision.
        """
        if method == SignatureMethod.HEADER:
            return await self.probe_headers(url)
        return await self.hash_content(url)

    async def current_signature(self, url: str):
        """
        Compute the current signature with the first tier that answers.

        Returns:
            (signature, method), or (None, "") when both tiers failed
        """
        signature = await self.probe_headers(url)
        if signature:
            return signature, SignatureMethod.HEADER

        signature = await self.hash_content(url)
        if signature:
            return signature, SignatureMethod.CONTENT

        return None, ""

    async def has_changed(self, watched) -> DetectionResult:
        """
        Check a watched URL for changes.

        Args:
            watched: Object with url, last_signature and
                last_signature_method attributes

        Returns:
            DetectionResult; changed is True on the first observation
        """
        previous = watched.last_signature or None
        previous_method = ""
        if previous:
            previous_method = watched.last_signature_method or classify_signature(previous)

        signature, method = await self.current_signature(watched.url)

        if signature is None:
            logger.warning(
                f"Change detection failed for {watched.url}; keeping previous signature"
            )
            return DetectionResult(
                changed=False,
                signature=previous,
                method=previous_method,
                error="All detection tiers failed",
            )

        if previous is None:
            logger.info(f"First observation of {watched.url} ({method})")
            return DetectionResult(changed=True, signature=signature, method=method)

        if method != previous_method:
            logger.info(
                f"Detection tier for {watched.url} switched from "
                f"{previous_method} to {method}; re-baselining"
            )
            return DetectionResult(changed=False, signature=signature, method=method)

        changed = signature != previous
        if changed:
            logger.info(f"Change detected for {watched.url} ({method})")
        return DetectionResult(changed=changed, signature=signature, method=method)
