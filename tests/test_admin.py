"""
Tests for Django Admin functionality.

These tests verify the operator surfaces: source actions, status badges
and the read-only engine records.
"""

import pytest
from django.contrib.admin.sites import AdminSite
from django.contrib.auth import get_user_model
from django.contrib.messages.storage.fallback import FallbackStorage
from django.contrib.sessions.middleware import SessionMiddleware
from django.test import RequestFactory
from unittest.mock import patch


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


@pytest.mark.django_db
class TestExternalSourceAdmin:
    """Tests for the ExternalSource admin interface."""

    def test_sync_now_action_dispatches_task(self, admin_request, source):
        """sync_now queues a manual sync per selected source."""
        from availability.admin import ExternalSourceAdmin
        from availability.models import ExternalSource

        model_admin = ExternalSourceAdmin(ExternalSource, AdminSite())

        with patch("availability.admin.trigger_manual_sync") as mock_task:
            model_admin.sync_now(admin_request, ExternalSource.objects.all())

        mock_task.apply_async.assert_called_once_with(args=[str(source.id)])

    def test_enable_and_disable_actions(self, admin_request, source):
        from availability.admin import ExternalSourceAdmin
        from availability.models import ExternalSource

        model_admin = ExternalSourceAdmin(ExternalSource, AdminSite())

        model_admin.disable_sources(admin_request, ExternalSource.objects.all())
        source.refresh_from_db()
        assert source.is_active is False

        model_admin.enable_sources(admin_request, ExternalSource.objects.all())
        source.refresh_from_db()
        assert source.is_active is True

    def test_last_sync_badge_shows_error(self, source):
        """A failed source shows its last error on hover."""
        from availability.admin import ExternalSourceAdmin
        from availability.models import ExternalSource

        model_admin = ExternalSourceAdmin(ExternalSource, AdminSite())
        source.last_sync_status = "error"
        source.last_sync_error = "HTTP 503 from partner"

        badge = model_admin.last_sync_status_badge(source)

        assert "Failed" in badge
        assert "HTTP 503 from partner" in badge

    def test_changelist_renders(self, admin_client, source):
        response = admin_client.get("/admin/availability/externalsource/")

        assert response.status_code == 200


@pytest.mark.django_db
class TestEngineRecordsAdmin:
    """Run, history and log records are written by the engine only."""

    def test_sync_run_is_read_only(self, admin_request):
        from availability.admin import SyncRunAdmin
        from availability.models import SyncRun

        model_admin = SyncRunAdmin(SyncRun, AdminSite())

        assert model_admin.has_add_permission(admin_request) is False
        assert model_admin.has_change_permission(admin_request) is False

    def test_sync_run_duration_display(self, source):
        from datetime import timedelta

        from availability.admin import SyncRunAdmin
        from availability.models import SyncRun

        run = SyncRun.objects.create(source=source)
        run.completed_at = run.started_at + timedelta(seconds=2.5)
        model_admin = SyncRunAdmin(SyncRun, AdminSite())

        assert model_admin.duration_display(run) == "2.5s"

    def test_mark_errors_resolved(self, admin_request, source):
        from availability.admin import SyncErrorAdmin
        from availability.models import SyncError

        SyncError.objects.create(
            source=source, url=source.source_url, error_type="timeout", message="Timeout"
        )
        model_admin = SyncErrorAdmin(SyncError, AdminSite())

        model_admin.mark_resolved(admin_request, SyncError.objects.all())

        assert SyncError.objects.filter(resolved=False).count() == 0

    def test_notification_log_changelist_renders(self, admin_client, db):
        response = admin_client.get("/admin/availability/notificationlog/")

        assert response.status_code == 200
