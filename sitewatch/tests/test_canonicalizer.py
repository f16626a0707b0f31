"""
Tests for the HTML canonicalizer and content signatures.
"""

import re

from sitewatch.services.canonicalizer import (
    canonicalize,
    content_signature,
    normalize_text,
    remove_dates,
)


BASE_HTML = """
<html>
<head><title>Pricing</title><script>window.buildId = "{build}";</script></head>
<body>
  <header><a href="/">Logo</a></header>
  <nav><a href="/a">A</a><a href="/b">B</a></nav>
  <div id="cookie-banner">We use cookies. Accept?</div>
  <main data-render-id="{build}" aria-busy="false">
    <h1 class="title-{build}">Plans</h1>
    <p style="color: red">Starter costs $10 per month.</p>
  </main>
  <script type="application/ld+json">{{"@type": "Product", "id": "{build}"}}</script>
  <footer>Copyright</footer>
</body>
</html>
"""


def render(build="abc123"):
    return BASE_HTML.format(build=build)


class TestCanonicalize:

    def test_is_deterministic(self):
        html = render()
        assert canonicalize(html) == canonicalize(html)
        assert content_signature(html) == content_signature(html)

    def test_keeps_visible_body_text_only(self):
        assert canonicalize(render()) == "Plans Starter costs $10 per month."

    def test_script_and_attribute_noise_does_not_change_signature(self):
        assert content_signature(render("abc123")) == content_signature(render("zzz999"))

    def test_comments_do_not_change_signature(self):
        html = render()
        commented = html.replace("<main", "<!-- rendered at 12:00:01 --><main")
        assert content_signature(html) == content_signature(commented)

    def test_text_change_changes_signature(self):
        html = render()
        changed = html.replace("$10", "$12")
        assert content_signature(html) != content_signature(changed)

    def test_removes_popups_and_ads_by_marker(self):
        html = """
        <body>
          <div class="modal-overlay">Subscribe!</div>
          <div class="sidebar-ad">Buy now</div>
          <div id="consent">Agree</div>
          <div class="shadow">Keep me</div>
        </body>
        """
        assert canonicalize(html) == "Keep me"

    def test_nbsp_and_whitespace_are_normalized(self):
        html = "<body><p>Hello&nbsp;&nbsp;world</p>\n\n<p>  again </p></body>"
        assert canonicalize(html) == "Hello world again"

    def test_document_without_body(self):
        assert canonicalize("<p>Just a fragment</p>") == "Just a fragment"

    def test_empty_input(self):
        assert canonicalize("") == ""

    def test_dates_removed_only_when_enabled(self):
        html = "<body><p>Updated 2024-01-15</p><p>© 2023 Acme</p></body>"
        assert canonicalize(html) == "Updated 2024-01-15 © 2023 Acme"
        assert canonicalize(html, remove_dates_enabled=True) == "Updated DATE YEAR Acme"


class TestSignature:

    def test_signature_is_sha256_hex(self):
        assert re.fullmatch(r"[0-9a-f]{64}", content_signature(render()))


class TestHelpers:

    def test_normalize_text(self):
        assert normalize_text("  a  b\t\nc  ") == "a b c"

    def test_remove_dates(self):
        assert remove_dates("Posted Jan 5, 2024") == "Posted DATE"
