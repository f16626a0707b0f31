"""
Tests for the generation pipeline.

The pipeline is async; tests drive it through async_to_sync so ORM
assertions can run in the test thread.
"""

import uuid
from unittest.mock import MagicMock

import pytest
from asgiref.sync import async_to_sync

from sitewatch.exceptions import GenerationNotFound
from sitewatch.models import (
    Generation,
    GenerationStatus,
    GenerationTrigger,
    SignatureMethod,
    WatchedUrl,
)
from sitewatch.services.canonicalizer import content_signature
from sitewatch.services.change_detector import ChangeDetector
from sitewatch.services.generation_pipeline import GenerationPipeline
from sitewatch.services.llms_builder import LLMS_FILE, LLMS_FULL_FILE, LlmsTxtBuilder
from sitewatch.services.site_crawler import SiteCrawler
from sitewatch.tests.conftest import SITE
from sitewatch.tests.fakes import FakeFetcher

HOME = f"{SITE}/"


def build_pipeline(fetcher, store, builder=None):
    return GenerationPipeline(
        crawler=SiteCrawler(fetcher=fetcher),
        detector=ChangeDetector(fetcher=fetcher),
        builder=builder,
        store=store,
    )


def run(pipeline, job_id, signature_method=None):
    return async_to_sync(pipeline.run)(job_id, signature_method=signature_method)


@pytest.fixture
def generation(transactional_db):
    return Generation.create_pending(url=HOME)


@pytest.mark.django_db(transaction=True)
class TestManualGeneration:

    def test_success_writes_both_files(self, generation, fake_fetcher, artifact_store):
        result = run(build_pipeline(fake_fetcher, artifact_store), generation.job_id)

        generation.refresh_from_db()
        assert result.status == GenerationStatus.COMPLETED
        assert generation.status == GenerationStatus.COMPLETED
        assert generation.pages_crawled == 5
        assert generation.output_reference == f"generated/{generation.job_id}"

        llms = artifact_store.read(generation.output_reference, LLMS_FILE)
        assert llms.startswith("# example.com\n\n> Example builds tools for teams.")
        assert "## About\n\n- [About Example](https://example.com/about): About Example We are a small team." in llms

        full = artifact_store.read(generation.output_reference, LLMS_FULL_FILE)
        assert "URL: https://example.com/blog/first-post" in full

    def test_first_success_starts_watching(self, generation, fake_fetcher, artifact_store, site_pages):
        run(build_pipeline(fake_fetcher, artifact_store), generation.job_id)

        watched = WatchedUrl.objects.get(url=HOME)
        generation.refresh_from_db()
        assert generation.watched_url == watched
        assert watched.last_signature == content_signature(site_pages[HOME])
        assert watched.last_signature_method == SignatureMethod.CONTENT
        assert watched.last_checked_at is not None

    def test_inactive_watch_is_left_alone(self, generation, fake_fetcher, artifact_store):
        watched = WatchedUrl.objects.create(url=HOME, is_active=False)
        Generation.objects.filter(pk=generation.pk).update(watched_url=watched)

        run(build_pipeline(fake_fetcher, artifact_store), generation.job_id)

        watched.refresh_from_db()
        assert watched.last_signature is None

    def test_empty_crawl_fails(self, generation, artifact_store):
        result = run(build_pipeline(FakeFetcher(), artifact_store), generation.job_id)

        generation.refresh_from_db()
        assert result.status == GenerationStatus.FAILED
        assert generation.error_message == (
            "No pages could be crawled from https://example.com/ (1 page errors)"
        )
        assert generation.page_errors == [{"url": HOME, "error": "HTTP 404"}]
        assert not WatchedUrl.objects.exists()

    def test_render_failure_leaves_no_artifacts(self, generation, fake_fetcher, artifact_store):
        builder = MagicMock(spec=LlmsTxtBuilder)
        builder.build.side_effect = RuntimeError("template broken")

        run(build_pipeline(fake_fetcher, artifact_store, builder=builder), generation.job_id)

        generation.refresh_from_db()
        assert generation.status == GenerationStatus.FAILED
        assert generation.error_message == "template broken"
        assert generation.output_reference == ""
        assert generation.pages_crawled == 5
        assert not artifact_store.exists(artifact_store.reference_for(generation.job_id))

    def test_duplicate_run_is_ignored(self, generation, fake_fetcher, artifact_store):
        generation.mark_in_progress()

        result = run(build_pipeline(fake_fetcher, artifact_store), generation.job_id)

        assert result is None
        assert fake_fetcher.fetched == []

    def test_unknown_job(self, fake_fetcher, artifact_store):
        with pytest.raises(GenerationNotFound):
            run(build_pipeline(fake_fetcher, artifact_store), uuid.uuid4())

    def test_options_limit_the_crawl(self, transactional_db, fake_fetcher, artifact_store):
        generation = Generation.create_pending(url=HOME, options={"max_pages": 2})

        run(build_pipeline(fake_fetcher, artifact_store), generation.job_id)

        generation.refresh_from_db()
        assert generation.pages_crawled == 2


@pytest.mark.django_db(transaction=True)
class TestAutomaticGeneration:

    @pytest.fixture
    def watched(self, transactional_db):
        return WatchedUrl.objects.create(
            url=HOME,
            last_signature="0" * 64,
            last_signature_method=SignatureMethod.CONTENT,
        )

    def test_stores_signature_from_deciding_tier(self, watched, site_pages, artifact_store):
        fetcher = FakeFetcher(pages=site_pages, headers={HOME: {"etag": '"v2"'}})
        generation = Generation.create_pending(
            url=HOME, trigger=GenerationTrigger.AUTOMATIC, watched_url=watched
        )

        run(build_pipeline(fetcher, artifact_store), generation.job_id, SignatureMethod.CONTENT)

        watched.refresh_from_db()
        assert watched.last_signature == content_signature(site_pages[HOME])
        assert watched.last_signature_method == SignatureMethod.CONTENT

    def test_header_tier(self, watched, site_pages, artifact_store):
        fetcher = FakeFetcher(pages=site_pages, headers={HOME: {"etag": '"v2"'}})
        generation = Generation.create_pending(
            url=HOME, trigger=GenerationTrigger.AUTOMATIC, watched_url=watched
        )

        run(build_pipeline(fetcher, artifact_store), generation.job_id, SignatureMethod.HEADER)

        watched.refresh_from_db()
        assert watched.last_signature == 'etag="v2"'
        assert watched.last_signature_method == SignatureMethod.HEADER

    def test_failed_generation_keeps_old_signature(self, watched, artifact_store):
        generation = Generation.create_pending(
            url=HOME, trigger=GenerationTrigger.AUTOMATIC, watched_url=watched
        )

        run(build_pipeline(FakeFetcher(), artifact_store), generation.job_id, SignatureMethod.CONTENT)

        watched.refresh_from_db()
        assert watched.last_signature == "0" * 64
