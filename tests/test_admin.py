"""
Tests for Django Admin functionality.

Watch-list actions and the read-only generation history.
"""

import pytest
from django.contrib.admin.sites import AdminSite
from django.contrib.auth import get_user_model
from django.contrib.messages.storage.fallback import FallbackStorage
from django.contrib.sessions.middleware import SessionMiddleware
from django.test import RequestFactory
from django.utils import timezone

from sitewatch.admin import GenerationAdmin, WatchedUrlAdmin
from sitewatch.models import Generation, GenerationTrigger, WatchedUrl


@pytest.fixture
def admin_user(db):
    """Create an admin user for testing."""
    User = get_user_model()
    return User.objects.create_superuser(
        username="admin",
        email="admin@test.com",
        password="testpass123",
    )


@pytest.fixture
def admin_request(admin_user):
    """Create an admin request with user and messages support attached."""
    request = RequestFactory().get("/admin/")
    request.user = admin_user

    middleware = SessionMiddleware(lambda x: None)
    middleware.process_request(request)
    request.session.save()

    setattr(request, "_messages", FallbackStorage(request))

    return request


@pytest.fixture
def watched_admin():
    return WatchedUrlAdmin(WatchedUrl, AdminSite())


@pytest.fixture
def generation_admin():
    return GenerationAdmin(Generation, AdminSite())


@pytest.mark.django_db
class TestWatchedUrlAdmin:

    def test_regenerate_now_queues_manual_generations(self, admin_request, watched_admin, dispatch):
        first = WatchedUrl.objects.create(url="https://a.example/")
        second = WatchedUrl.objects.create(url="https://b.example/")

        watched_admin.regenerate_now(admin_request, WatchedUrl.objects.all())

        generations = Generation.objects.all()
        assert generations.count() == 2
        assert {g.watched_url_id for g in generations} == {first.pk, second.pk}
        assert all(g.trigger == GenerationTrigger.MANUAL for g in generations)
        assert dispatch.call_count == 2

    def test_disable_and_enable(self, admin_request, watched_admin, watched_url):
        watched_admin.disable_urls(admin_request, WatchedUrl.objects.all())
        assert not WatchedUrl.objects.get().is_active

        watched_admin.enable_urls(admin_request, WatchedUrl.objects.all())
        assert WatchedUrl.objects.get().is_active

    def test_check_now_makes_url_due(self, admin_request, watched_admin, watched_url):
        watched_url.touch(timezone.now())
        assert WatchedUrl.objects.due_for_check() == []

        watched_admin.check_now(admin_request, WatchedUrl.objects.all())

        assert WatchedUrl.objects.due_for_check() == [watched_url]

    def test_active_badge(self, watched_admin, watched_url):
        assert "Active" in watched_admin.is_active_badge(watched_url)
        watched_url.is_active = False
        assert "Inactive" in watched_admin.is_active_badge(watched_url)


@pytest.mark.django_db
class TestGenerationAdmin:

    def test_history_is_read_only(self, admin_request, generation_admin):
        assert generation_admin.has_add_permission(admin_request) is False
        assert generation_admin.has_delete_permission(admin_request) is False

    def test_status_badge_and_duration(self, generation_admin, watched_url):
        generation = Generation.create_pending(url=watched_url.url)

        assert "#ffc107" in generation_admin.status_badge(generation)
        assert generation_admin.duration_display(generation) == "-"

        generation.mark_in_progress()
        generation.mark_completed("generated/x")

        assert "Completed" in generation_admin.status_badge(generation)
        assert generation_admin.duration_display(generation).endswith("s")

    def test_changelist_renders(self, client, admin_user, completed_generation):
        client.force_login(admin_user)

        assert client.get("/admin/sitewatch/generation/").status_code == 200
        assert client.get("/admin/sitewatch/watchedurl/").status_code == 200
