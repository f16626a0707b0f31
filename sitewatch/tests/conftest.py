"""
Shared fixtures for the sitewatch unit tests.
"""

import pytest
from django.core.files.storage import FileSystemStorage

from sitewatch.services.artifact_store import ArtifactStore
from sitewatch.services.notifier import reset_notifier
from sitewatch.tests.fakes import FakeFetcher, page_html

SITE = "https://example.com"


@pytest.fixture(autouse=True)
def _fresh_notifier():
    reset_notifier()
    yield
    reset_notifier()


@pytest.fixture
def site_pages():
    """A small site: home -> about, blog -> team, blog post."""
    return {
        f"{SITE}/": page_html(
            "Example Home",
            "Example builds tools for teams.",
            links=["/about", "/blog", "/docs/manual.pdf", "/login", "https://other.com/x"],
            description="Example builds tools for teams.",
        ),
        f"{SITE}/about": page_html(
            "About Example",
            "We are a small team.",
            links=["/team", "/"],
        ),
        f"{SITE}/blog": page_html(
            "Blog",
            "Latest news from Example.",
            links=["/blog/first-post"],
        ),
        f"{SITE}/team": page_html("Our Team", "Meet the people."),
        f"{SITE}/blog/first-post": page_html("First Post", "Hello world."),
    }


@pytest.fixture
def fake_fetcher(site_pages):
    return FakeFetcher(pages=site_pages)


@pytest.fixture
def artifact_store(tmp_path):
    return ArtifactStore(storage=FileSystemStorage(location=str(tmp_path)))
