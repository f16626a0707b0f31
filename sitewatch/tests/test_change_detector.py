"""
Tests for two-tier change detection.
"""

from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest

from sitewatch.fetchers import HttpxPageFetcher
from sitewatch.services.canonicalizer import content_signature
from sitewatch.services.change_detector import ChangeDetector, header_signature
from sitewatch.tests.fakes import FakeFetcher, page_html

URL = "https://example.com/"


def watched(signature=None, method=""):
    return SimpleNamespace(url=URL, last_signature=signature, last_signature_method=method)


class BrokenFetcher(FakeFetcher):
    """Raises the given error from every request."""

    def __init__(self, error):
        super().__init__()
        self.error = error

    async def fetch_raw(self, url):
        raise self.error

    async def fetch_headers(self, url):
        raise self.error


class TestHeaderSignature:

    def test_uses_available_headers_in_fixed_order(self):
        headers = {"Content-Length": "512", "ETag": '"abc"'}
        assert header_signature(headers) == 'etag="abc"|content-length=512'

    def test_no_usable_headers(self):
        assert header_signature({"content-type": "text/html"}) is None
        assert header_signature({"etag": "  "}) is None


class TestHeaderTier:

    @pytest.mark.asyncio
    async def test_first_observation_is_a_change(self):
        fetcher = FakeFetcher(headers={URL: {"etag": '"v1"'}})

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched())

        assert result.changed
        assert result.signature == 'etag="v1"'
        assert result.method == "header"

    @pytest.mark.asyncio
    async def test_same_etag_is_unchanged_without_full_fetch(self):
        fetcher = FakeFetcher(
            pages={URL: page_html("Home")},
            headers={URL: {"etag": '"v1"'}},
        )

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched('etag="v1"', "header"))

        assert not result.changed
        assert fetcher.fetched == []

    @pytest.mark.asyncio
    async def test_new_etag_is_a_change(self):
        fetcher = FakeFetcher(headers={URL: {"etag": '"v2"'}})

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched('etag="v1"', "header"))

        assert result.changed
        assert result.signature == 'etag="v2"'

    @pytest.mark.asyncio
    async def test_non_success_head_falls_through_to_content(self):
        html = page_html("Home", "Hello")
        fetcher = FakeFetcher(
            pages={URL: html},
            headers={URL: {"etag": '"v1"'}},
            head_status={URL: 405},
        )

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched())

        assert result.method == "content"
        assert result.signature == content_signature(html)

    @pytest.mark.asyncio
    async def test_etag_scenario_over_http(self):
        gets = []

        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(200, headers={"ETag": '"v1"'})
            gets.append(request)
            return httpx.Response(200, text=page_html("Home"))

        fetcher = HttpxPageFetcher(transport=httpx.MockTransport(handler), max_retries=1)
        detector = ChangeDetector(fetcher=fetcher)
        try:
            first = await detector.has_changed(watched())
            second = await detector.has_changed(watched(first.signature, first.method))
        finally:
            await detector.close()

        assert first.changed
        assert not second.changed
        assert gets == []


class TestContentTier:

    @pytest.mark.asyncio
    async def test_first_observation_without_headers_uses_hash(self):
        html = page_html("Home", "Hello")
        fetcher = FakeFetcher(pages={URL: html}, headers={URL: {}})

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched())

        assert result.changed
        assert result.method == "content"
        assert len(result.signature) == 64

    @pytest.mark.asyncio
    async def test_same_content_is_unchanged(self):
        html = page_html("Home", "Hello")
        fetcher = FakeFetcher(pages={URL: html})

        result = await ChangeDetector(fetcher=fetcher).has_changed(
            watched(content_signature(html), "content")
        )

        assert not result.changed

    @pytest.mark.asyncio
    async def test_script_only_change_is_unchanged(self):
        html = page_html("Home", "Hello")
        noisy = html.replace("</body>", "<script>track(123)</script></body>")
        fetcher = FakeFetcher(pages={URL: noisy})

        result = await ChangeDetector(fetcher=fetcher).has_changed(
            watched(content_signature(html), "content")
        )

        assert not result.changed

    @pytest.mark.asyncio
    async def test_text_change_is_a_change(self):
        old = page_html("Home", "Hello")
        new = page_html("Home", "Hello, world")
        fetcher = FakeFetcher(pages={URL: new})

        result = await ChangeDetector(fetcher=fetcher).has_changed(
            watched(content_signature(old), "content")
        )

        assert result.changed
        assert result.signature == content_signature(new)

    @pytest.mark.asyncio
    async def test_legacy_signature_without_method_is_classified(self):
        html = page_html("Home", "Hello")
        fetcher = FakeFetcher(pages={URL: html})

        result = await ChangeDetector(fetcher=fetcher).has_changed(
            watched(content_signature(html), "")
        )

        assert not result.changed
        assert result.method == "content"


class TestTierSwitch:

    @pytest.mark.asyncio
    async def test_header_to_content_rebaselines_without_change(self):
        html = page_html("Home")
        fetcher = FakeFetcher(pages={URL: html})

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched('etag="v1"', "header"))

        assert not result.changed
        assert result.method == "content"
        assert result.signature == content_signature(html)

    @pytest.mark.asyncio
    async def test_content_to_header_rebaselines_without_change(self):
        fetcher = FakeFetcher(headers={URL: {"last-modified": "Tue, 01 Jan 2030 00:00:00 GMT"}})

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched("a" * 64, "content"))

        assert not result.changed
        assert result.method == "header"


class TestFailClosed:

    @pytest.mark.asyncio
    async def test_both_tiers_failing_keeps_previous_signature(self):
        fetcher = FakeFetcher()

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched('etag="v1"', "header"))

        assert not result.changed
        assert result.signature == 'etag="v1"'
        assert result.method == "header"
        assert result.error

    @pytest.mark.asyncio
    async def test_failure_on_first_check_reports_no_change(self):
        result = await ChangeDetector(fetcher=FakeFetcher()).has_changed(watched())

        assert not result.changed
        assert result.signature is None

    @pytest.mark.asyncio
    async def test_unexpected_fetcher_errors_fail_closed(self):
        fetcher = BrokenFetcher(httpx.InvalidURL("Invalid non-printable ASCII character in URL"))

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched("a" * 64, "content"))

        assert not result.changed
        assert result.signature == "a" * 64
        assert result.method == "content"
        assert result.error

    @pytest.mark.asyncio
    async def test_unexpected_header_error_falls_through_to_content(self):
        html = page_html("Home", "Welcome.")
        fetcher = FakeFetcher(pages={URL: html})
        fetcher.fetch_headers = BrokenFetcher(RuntimeError("bad header")).fetch_headers

        result = await ChangeDetector(fetcher=fetcher).has_changed(watched())

        assert result.changed
        assert result.method == "content"
        assert result.signature == content_signature(html)

    @pytest.mark.asyncio
    async def test_canonicalization_error_fails_closed(self):
        fetcher = FakeFetcher(pages={URL: page_html("Home", "Welcome.")})

        with patch(
            "sitewatch.services.change_detector.content_signature",
            side_effect=ValueError("unparseable markup"),
        ):
            result = await ChangeDetector(fetcher=fetcher).has_changed(
                watched("a" * 64, "content")
            )

        assert not result.changed
        assert result.signature == "a" * 64
        assert result.error


class TestSignatureFor:

    @pytest.mark.asyncio
    async def test_computes_requested_tier_only(self):
        html = page_html("Home")
        fetcher = FakeFetcher(pages={URL: html}, headers={URL: {"etag": '"v1"'}})
        detector = ChangeDetector(fetcher=fetcher)

        assert await detector.signature_for(URL, "content") == content_signature(html)
        assert fetcher.head_requests == []
        assert await detector.signature_for(URL, "header") == 'etag="v1"'
