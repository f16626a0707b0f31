"""
Pytest configuration and fixtures for the sitewatch API and integration tests.
"""

import pytest


@pytest.fixture(autouse=True)
def _reset_state():
    """Clear throttle history and the cached notifier between tests."""
    from django.core.cache import cache
    from sitewatch.services.notifier import reset_notifier

    cache.clear()
    reset_notifier()
    yield
    reset_notifier()


@pytest.fixture
def api_client():
    """Create a test API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def user(db):
    """Create a regular API user."""
    from django.contrib.auth import get_user_model

    return get_user_model().objects.create_user(
        username="api-user",
        email="api@test.com",
        password="testpass123",
    )


@pytest.fixture
def auth_client(api_client, user):
    """API client authenticated as a regular user."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def dispatch():
    """Patch Celery dispatch of generations."""
    from unittest.mock import patch

    with patch("sitewatch.services.generation_service.run_generation") as task:
        yield task.apply_async


@pytest.fixture
def watched_url(db):
    """Create an active watched URL."""
    from sitewatch.models import WatchedUrl

    return WatchedUrl.objects.create(
        url="https://example.com/",
        check_interval_minutes=60,
    )


@pytest.fixture
def artifact_store(settings, tmp_path):
    """Artifact store writing to a per-test directory."""
    from sitewatch.services.artifact_store import ArtifactStore

    settings.SITEWATCH_ARTIFACT_ROOT = str(tmp_path)
    return ArtifactStore()


@pytest.fixture
def completed_generation(watched_url, artifact_store):
    """A completed generation with both files written."""
    from sitewatch.models import Generation

    generation = Generation.create_pending(url=watched_url.url, watched_url=watched_url)
    generation.mark_in_progress()
    reference = artifact_store.write(
        generation.job_id,
        {"llms.txt": "# example.com\n", "llms-full.txt": "# example.com - Full Content\n"},
    )
    generation.mark_completed(reference, pages_crawled=2)
    return generation
