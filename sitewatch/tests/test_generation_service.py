"""
Tests for job submission and watch-list operations.

Celery dispatch is patched out; these tests only cover the database side.
"""

import uuid
from unittest.mock import patch

import pytest

from sitewatch.exceptions import (
    DuplicateJobError,
    GenerationInProgress,
    GenerationNotFound,
    InvalidURLError,
    WatchedUrlNotFound,
)
from sitewatch.models import Generation, GenerationStatus, GenerationTrigger, WatchedUrl
from sitewatch.services import generation_service


@pytest.fixture
def dispatch():
    with patch("sitewatch.services.generation_service.run_generation") as task:
        yield task.apply_async


@pytest.fixture
def notifier():
    with patch("sitewatch.services.notifier.get_notifier") as get:
        yield get.return_value


def completed_generation(url="https://example.com/", watched=None, store=None):
    generation = Generation.create_pending(url=url, watched_url=watched)
    generation.mark_in_progress()
    reference = store.write(generation.job_id, {"llms.txt": "# example.com\n"}) if store else "x"
    generation.mark_completed(reference, pages_crawled=1)
    return generation


@pytest.mark.django_db
class TestRequestGeneration:

    def test_creates_pending_job_and_dispatches(self, dispatch):
        generation = generation_service.request_generation("https://Example.com")

        assert generation.status == GenerationStatus.PENDING
        assert generation.trigger == GenerationTrigger.MANUAL
        assert generation.url == "https://example.com/"
        dispatch.assert_called_once_with(args=[str(generation.job_id)], queue="generate")

    def test_invalid_url(self, dispatch):
        with pytest.raises(InvalidURLError):
            generation_service.request_generation("not a url")

        assert not Generation.objects.exists()
        dispatch.assert_not_called()

    def test_options_are_validated(self, dispatch):
        generation = generation_service.request_generation(
            "https://example.com", options={"max_pages": "10", "max_depth": 2, "other": 1}
        )
        assert generation.options == {"max_pages": 10, "max_depth": 2}

        with pytest.raises(ValueError):
            generation_service.request_generation("https://example.com", options={"max_pages": 0})

    def test_caller_supplied_job_id(self, dispatch):
        job_id = uuid.uuid4()

        generation = generation_service.request_generation("https://example.com", job_id=str(job_id))

        assert generation.job_id == job_id
        with pytest.raises(DuplicateJobError):
            generation_service.request_generation("https://example.com", job_id=job_id)

    def test_links_active_watch(self, dispatch):
        watched = WatchedUrl.objects.create(url="https://example.com/")

        generation = generation_service.request_generation("https://example.com")

        assert generation.watched_url == watched

    def test_dispatch_failure_fails_the_job(self, dispatch):
        dispatch.side_effect = ConnectionError("broker down")

        with pytest.raises(ConnectionError):
            generation_service.request_generation("https://example.com")

        generation = Generation.objects.get()
        assert generation.status == GenerationStatus.FAILED
        assert generation.error_message == "Dispatch failed: broker down"

    def test_regeneration_of_watched_url(self, dispatch):
        watched = WatchedUrl.objects.create(url="https://example.com/")

        generation = generation_service.request_regeneration(watched.pk)

        assert generation.watched_url == watched
        assert generation.trigger == GenerationTrigger.MANUAL
        with pytest.raises(WatchedUrlNotFound):
            generation_service.request_regeneration(watched.pk + 1)


@pytest.mark.django_db
class TestGenerationLookup:

    def test_status_of_unknown_job(self):
        with pytest.raises(GenerationNotFound):
            generation_service.get_generation_status(uuid.uuid4())

    def test_status_of_malformed_job_id(self):
        with pytest.raises(GenerationNotFound):
            generation_service.get_generation_status("not-a-uuid")

    def test_read_artifact(self, artifact_store):
        generation = completed_generation(store=artifact_store)

        content = generation_service.read_artifact(generation.job_id, "llms.txt", store=artifact_store)

        assert content == "# example.com\n"

    def test_read_artifact_of_unfinished_job(self, artifact_store):
        generation = Generation.create_pending(url="https://example.com/")

        with pytest.raises(FileNotFoundError):
            generation_service.read_artifact(generation.job_id, "llms.txt", store=artifact_store)


@pytest.mark.django_db
class TestDeleteGeneration:

    def test_removes_artifacts_and_keeps_record(self, artifact_store):
        generation = completed_generation(store=artifact_store)
        reference = generation.output_reference

        deleted = generation_service.delete_generation(generation.job_id, store=artifact_store)

        assert deleted.status == GenerationStatus.DELETED
        assert not artifact_store.exists(reference)
        assert Generation.objects.filter(job_id=generation.job_id).exists()

    def test_delete_twice_is_noop(self, artifact_store):
        generation = completed_generation(store=artifact_store)
        generation_service.delete_generation(generation.job_id, store=artifact_store)

        again = generation_service.delete_generation(generation.job_id, store=artifact_store)

        assert again.status == GenerationStatus.DELETED

    def test_running_job_cannot_be_deleted(self, artifact_store):
        generation = Generation.create_pending(url="https://example.com/")

        with pytest.raises(GenerationInProgress):
            generation_service.delete_generation(generation.job_id, store=artifact_store)

    def test_failed_job_can_be_deleted(self, artifact_store):
        generation = Generation.create_pending(url="https://example.com/")
        generation.mark_failed("boom")

        deleted = generation_service.delete_generation(generation.job_id, store=artifact_store)

        assert deleted.status == GenerationStatus.DELETED


@pytest.mark.django_db
class TestWatchList:

    def test_watch_creates_and_announces(self, notifier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            watched = generation_service.watch_url(
                "https://example.com/docs/", check_interval_minutes=15
            )

        assert watched.url == "https://example.com/docs"
        assert watched.check_interval_minutes == 15
        assert watched.is_active
        notifier.watched_urls_changed.assert_called_once_with()

    def test_default_interval(self, settings):
        settings.SITEWATCH_DEFAULT_CHECK_INTERVAL_MINUTES = 30

        assert generation_service.watch_url("https://example.com").check_interval_minutes == 30

    def test_watching_twice_reuses_row(self, notifier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            first = generation_service.watch_url("https://example.com")
            second = generation_service.watch_url("https://example.com/")

        assert first.pk == second.pk
        assert WatchedUrl.objects.count() == 1
        assert notifier.watched_urls_changed.call_count == 1

    def test_rewatch_reactivates(self):
        watched = generation_service.watch_url("https://example.com")
        generation_service.unwatch_url(watched.pk)

        again = generation_service.watch_url("https://example.com", check_interval_minutes=5)

        assert again.pk == watched.pk
        assert again.is_active
        assert again.check_interval_minutes == 5

    def test_invalid_watch_requests(self):
        with pytest.raises(InvalidURLError):
            generation_service.watch_url("ftp://example.com")
        with pytest.raises(ValueError):
            generation_service.watch_url("https://example.com", check_interval_minutes=0)

    def test_unwatch(self, notifier, django_capture_on_commit_callbacks):
        watched = WatchedUrl.objects.create(url="https://example.com/")

        with django_capture_on_commit_callbacks(execute=True):
            result = generation_service.unwatch_url(watched.pk)

        assert not result.is_active
        assert generation_service.list_watched_urls() == []
        notifier.watched_urls_changed.assert_called_once_with()
        with pytest.raises(WatchedUrlNotFound):
            generation_service.unwatch_url(watched.pk + 1)

    def test_list_includes_recent_generations(self):
        watched = WatchedUrl.objects.create(url="https://example.com/")
        WatchedUrl.objects.create(url="https://old.example/", is_active=False)
        for _ in range(7):
            Generation.create_pending(url=watched.url, watched_url=watched)

        watched_urls = generation_service.list_watched_urls()

        assert watched_urls == [watched]
        assert len(watched_urls[0].recent_generations) == 5
        assert len(generation_service.list_watched_urls(include_inactive=True)) == 2

    def test_generations_for_url_include_deleted(self):
        watched = WatchedUrl.objects.create(url="https://example.com/")
        generation = completed_generation(watched=watched)
        generation.mark_deleted()

        generations = generation_service.list_generations_for_url(watched.pk)

        assert [g.status for g in generations] == [GenerationStatus.DELETED]
        with pytest.raises(WatchedUrlNotFound):
            generation_service.list_generations_for_url(watched.pk + 1)

    def test_recent_generations_newest_first(self):
        older = Generation.create_pending(url="https://a.example/")
        newer = Generation.create_pending(url="https://b.example/")

        recent = generation_service.list_recent_generations(limit=1)

        assert recent == [newer]
        assert older not in recent
