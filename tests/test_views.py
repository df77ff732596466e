"""
Tests for the health check and manual sync API endpoints.
"""

import uuid
from unittest.mock import patch

import pytest

from availability.models import SyncRun
from availability.types import SyncOutcome


@pytest.mark.django_db
class TestHealthCheck:
    """GET /api/health/"""

    def test_healthy(self, client, source):
        """The local-memory cache reports redis as not configured."""
        response = client.get("/api/health/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["redis"] == "not_configured"
        assert data["active_sources"] == 1
        assert data["failing_sources"] == 0

    def test_counts_failures(self, client, source):
        source.last_sync_status = "error"
        source.save()
        SyncRun.objects.create(source=source, status="failed")
        SyncRun.objects.create(source=source, status="completed")

        data = client.get("/api/health/").json()

        assert data["failing_sources"] == 1
        assert data["runs_24h"] == 2
        assert data["failed_runs_24h"] == 1

    def test_redis_down_reported(self, client, db):
        """A failing redis ping is reported without failing the check."""
        with patch("availability.views.get_redis_connection") as mock_redis:
            mock_redis.return_value.ping.side_effect = ConnectionError("refused")
            response = client.get("/api/health/")

        assert response.status_code == 200
        assert response.json()["redis"] == "error"


@pytest.mark.django_db
class TestManualSyncEndpoint:
    """POST /api/v1/sources/<id>/sync/"""

    def url(self, source_id):
        return f"/api/v1/sources/{source_id}/sync/"

    def test_requires_staff(self, api_client, source):
        response = api_client.post(self.url(source.id))

        assert response.status_code in (401, 403)

    def test_returns_outcome(self, admin_client_api, source):
        outcome = SyncOutcome(source_id=source.id, status="success", state="persisted")

        with patch("availability.views.trigger_manual_sync", return_value=outcome) as mock_trigger:
            response = admin_client_api.post(self.url(source.id))

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert mock_trigger.call_args[1]["manual_values"] is None

    def test_manual_values_from_body(self, admin_client_api, source):
        outcome = SyncOutcome(source_id=source.id, status="success", state="persisted")

        with patch("availability.views.trigger_manual_sync", return_value=outcome) as mock_trigger:
            admin_client_api.post(
                self.url(source.id), {"available_seats": 3, "status": "open"}, format="json"
            )

        values = mock_trigger.call_args[1]["manual_values"]
        assert values.available_seats == 3
        assert values.status == "open"

    def test_invalid_values(self, admin_client_api, source):
        response = admin_client_api.post(
            self.url(source.id), {"available_seats": "many"}, format="json"
        )

        assert response.status_code == 400

    def test_non_object_body(self, admin_client_api, source):
        """A JSON body that is not an object is a 400, not a server error."""
        response = admin_client_api.post(self.url(source.id), [1], format="json")

        assert response.status_code == 400

    def test_fractional_seat_count(self, admin_client_api, source):
        response = admin_client_api.post(
            self.url(source.id), {"available_seats": 3.7}, format="json"
        )

        assert response.status_code == 400

    def test_unknown_status(self, admin_client_api, source):
        response = admin_client_api.post(
            self.url(source.id), {"status": "bientôt"}, format="json"
        )

        assert response.status_code == 400

    def test_status_text_applied_to_departure(self, admin_client_api, source, departure, baseline):
        """Operator status text is mapped before it reaches the departure."""
        source.source_kind = "manual"
        source.save()

        response = admin_client_api.post(
            self.url(source.id), {"status": "complet"}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        departure.refresh_from_db()
        assert departure.status == "full"
        assert departure.available_seats == 0

    def test_unknown_source(self, admin_client_api):
        response = admin_client_api.post(self.url(uuid.uuid4()))

        assert response.status_code == 404

    def test_locked_source_conflict(self, admin_client_api, source):
        outcome = SyncOutcome(source_id=source.id, status="skipped", state="idle", error="busy")

        with patch("availability.views.trigger_manual_sync", return_value=outcome):
            response = admin_client_api.post(self.url(source.id))

        assert response.status_code == 409

    def test_failed_sync_still_200(self, admin_client_api, source):
        """A sync that ran and failed reports its error in the body."""
        outcome = SyncOutcome(
            source_id=source.id, status="error", state="error", error="HTTP 503", error_type="http_status"
        )

        with patch("availability.views.trigger_manual_sync", return_value=outcome):
            response = admin_client_api.post(self.url(source.id))

        assert response.status_code == 200
        assert response.json()["error_type"] == "http_status"
