"""
Celery tasks for the availability sync engine.

- check_due_sources: Periodic task to find due sources and queue their syncs
- sync_source: Worker task running the sync state machine for one source
- trigger_manual_sync: Operator-initiated sync returning the outcome
- record_internal_booking: new_booking notifications for an internal reservation
- cleanup_notification_logs: Periodic purge of old notification log rows

Worker concurrency on the sync queue is the sync pool size.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from availability.models import Departure, ExternalSource, NotificationLog
from availability.repository import AvailabilityRepository
from availability.types import FetchedAvailability
from availability.utils.locks import clear_queued, is_locked, mark_queued

logger = logging.getLogger(__name__)


@shared_task(name="availability.tasks.check_due_sources")
def check_due_sources() -> Dict[str, Any]:
    """
    Periodic task to check for sources due for syncing.

    Runs every 5 minutes via Celery Beat. A source whose previous run is
    still queued or running is skipped for this tick.

    Returns:
        Dict with counts of dispatched and skipped sources
    """
    logger.info("Checking for due sources...")

    now = timezone.now()
    dispatched = []
    skipped = []

    for source in AvailabilityRepository().load_due_sources(now=now):
        source_id = str(source.id)

        if is_locked(source_id) or not mark_queued(source_id):
            logger.debug(f"Source {source_id} still in flight, skipping")
            skipped.append(source_id)
            continue

        try:
            sync_source.apply_async(args=[source_id], queue="sync")
        except Exception as e:
            clear_queued(source_id)
            logger.error(f"Failed to dispatch sync for source {source_id}: {e}")
            continue

        dispatched.append(source_id)
        logger.info(f"Dispatched sync for source {source_id}")

    logger.info(
        f"Due source check complete: {len(dispatched)} dispatched, {len(skipped)} skipped"
    )

    return {
        "checked": True,
        "sources_dispatched": dispatched,
        "sources_skipped": skipped,
        "timestamp": now.isoformat(),
    }


@shared_task(name="availability.tasks.sync_source", bind=True)
def sync_source(self, source_id: str) -> Dict[str, Any]:
    """
    Sync worker task - runs one sync cycle for a source.

    Args:
        source_id: UUID of the ExternalSource to sync

    Returns:
        SyncOutcome as a dict
    """
    from availability.services import SyncOrchestrator

    clear_queued(source_id)

    try:
        source = ExternalSource.objects.select_related("circuit").get(id=source_id)
    except ExternalSource.DoesNotExist:
        logger.error(f"Source {source_id} not found")
        return {"source_id": source_id, "status": "error", "error": "Source not found"}

    if not source.is_scheduled:
        logger.info(f"Source {source_id} is no longer scheduled, skipping")
        return {"source_id": source_id, "status": "skipped", "error": "Source not scheduled"}

    return SyncOrchestrator().run(source).to_dict()


@shared_task(name="availability.tasks.trigger_manual_sync", bind=True)
def trigger_manual_sync(
    self, source_id: str, manual_values: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Run an operator-initiated sync and return its outcome.

    Args:
        source_id: UUID of the ExternalSource to sync
        manual_values: Operator-entered availability for manual sources

    Returns:
        SyncOutcome as a dict
    """
    from availability.services import trigger_manual_sync as run_manual_sync

    logger.info(f"Manual sync triggered for source {source_id}")

    try:
        values = FetchedAvailability.from_dict(manual_values) if manual_values else None
    except (TypeError, ValueError, ArithmeticError) as e:
        logger.error(f"Invalid manual values for source {source_id}: {e}")
        return {"source_id": source_id, "status": "error", "error": f"Invalid values: {e}"}

    try:
        outcome = run_manual_sync(source_id, manual_values=values)
    except ExternalSource.DoesNotExist:
        logger.error(f"Source {source_id} not found")
        return {"source_id": source_id, "status": "error", "error": "Source not found"}

    return outcome.to_dict()


@shared_task(name="availability.tasks.record_internal_booking", bind=True)
def record_internal_booking(
    self, departure_id: str, seats_delta: int, agency_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Notify watchers about a reservation recorded by the booking flow.

    Args:
        departure_id: UUID of the booked Departure
        seats_delta: Seats taken by the reservation
        agency_id: UUID of the booking agency, excluded from notifications

    Returns:
        Dict with the number of notifications dispatched
    """
    from availability.services import on_internal_booking

    try:
        intents = on_internal_booking(departure_id, seats_delta, agency_id=agency_id)
    except Departure.DoesNotExist:
        logger.error(f"Departure {departure_id} not found")
        return {"departure_id": departure_id, "status": "failed", "error": "Departure not found"}
    except ValueError as e:
        logger.warning(f"Ignoring booking on departure {departure_id}: {e}")
        return {"departure_id": departure_id, "status": "failed", "error": str(e)}

    return {
        "departure_id": departure_id,
        "status": "completed",
        "notifications_dispatched": len(intents),
    }


@shared_task(name="availability.tasks.cleanup_notification_logs")
def cleanup_notification_logs(days: Optional[int] = None) -> Dict[str, Any]:
    """
    Delete notification log rows older than the retention period.

    Rows inside the suppression window are never deleted, whatever the
    retention setting, so deduplication keeps working.
    """
    retention_days = days or getattr(settings, "AVAILABILITY_NOTIFICATION_LOG_RETENTION_DAYS", 30)
    suppression_hours = getattr(settings, "AVAILABILITY_NOTIFICATION_SUPPRESSION_HOURS", 24)

    horizon = max(timedelta(days=retention_days), timedelta(hours=suppression_hours))
    cutoff = timezone.now() - horizon

    deleted, _ = NotificationLog.objects.filter(created_at__lt=cutoff).delete()

    logger.info(f"Deleted {deleted} notification log row(s) older than {cutoff.isoformat()}")

    return {"deleted": deleted, "cutoff": cutoff.isoformat()}
