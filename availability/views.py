"""
Availability sync API views.

- health_check: service status for monitoring and load balancers
- manual_sync: operator-initiated sync of one source, returns the outcome
"""

from datetime import timedelta

from django.core.exceptions import ValidationError as InvalidValue
from django.db import connection
from django.http import JsonResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from availability.models import ExternalSource, SyncRun, SyncRunStatus
from availability.services import trigger_manual_sync
from availability.types import FetchedAvailability


def get_redis_connection():
    """
    Get Redis connection for health check.

    Returns:
        Redis client if the cache is django-redis, None otherwise.
    """
    from django.core.cache import cache

    if hasattr(cache, "client") and hasattr(cache.client, "get_client"):
        return cache.client.get_client()
    return None


def health_check(request):
    """
    Health check endpoint for the sync service.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "error"
        - redis: "connected", "not_configured", or "error"
        - active_sources: number of active sources
        - failing_sources: active sources whose last sync failed
        - runs_24h: sync runs started in the last 24 hours
        - failed_runs_24h: failed sync runs in the last 24 hours

    Returns:
        HTTP 200 for healthy, HTTP 503 for unhealthy
    """
    status_text = "healthy"
    http_status = 200

    database_status = "connected"
    try:
        connection.ensure_connection()
    except Exception:
        database_status = "error"
        status_text = "unhealthy"
        http_status = 503

    redis_status = "not_configured"
    try:
        redis_client = get_redis_connection()
        if redis_client is not None:
            redis_status = "connected" if redis_client.ping() else "error"
    except Exception:
        redis_status = "error"

    counts = {
        "active_sources": None,
        "failing_sources": None,
        "runs_24h": None,
        "failed_runs_24h": None,
    }
    if database_status == "connected":
        since = timezone.now() - timedelta(hours=24)
        active = ExternalSource.objects.filter(is_active=True)
        recent_runs = SyncRun.objects.filter(started_at__gte=since)
        counts = {
            "active_sources": active.count(),
            "failing_sources": active.filter(last_sync_status="error").count(),
            "runs_24h": recent_runs.count(),
            "failed_runs_24h": recent_runs.filter(status=SyncRunStatus.FAILED).count(),
        }

    return JsonResponse(
        {
            "status": status_text,
            "database": database_status,
            "redis": redis_status,
            **counts,
        },
        status=http_status,
    )


@api_view(["POST"])
def manual_sync(request, source_id):
    """
    Sync one source now and return the outcome.

    Endpoint: POST /api/v1/sources/<source_id>/sync/
    Optional body: operator-entered values for manual sources
    (available_seats, total_seats, status, price, next_departure_date).
    """
    values = None
    if request.data:
        try:
            values = FetchedAvailability.from_dict(request.data)
        except (TypeError, ValueError, ArithmeticError) as e:
            return Response({"error": f"Invalid values: {e}"}, status=status.HTTP_400_BAD_REQUEST)

    try:
        outcome = trigger_manual_sync(source_id, manual_values=values)
    except (ExternalSource.DoesNotExist, InvalidValue):
        return Response({"error": "Source not found"}, status=status.HTTP_404_NOT_FOUND)

    if outcome.status == "skipped":
        http_status = status.HTTP_409_CONFLICT
    else:
        http_status = status.HTTP_200_OK
    return Response(outcome.to_dict(), status=http_status)
