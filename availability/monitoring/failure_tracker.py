"""
Consecutive failure tracking for external sources.

- Counter lives on ExternalSource.consecutive_failures
- Alert threshold: 5 consecutive failures (configurable)
- Triggers a Sentry alert when the threshold is reached
- Resets on a successful sync

A source over the threshold stays active: the scheduler keeps retrying it
until an operator deactivates it.

Usage:
    from availability.monitoring import get_failure_tracker

    tracker = get_failure_tracker()
    count = tracker.record_failure(source)
    tracker.record_success(source)
"""

import logging
from typing import Optional

from django.conf import settings
from django.db.models import F

logger = logging.getLogger(__name__)

# Default threshold for consecutive failures before alerting
DEFAULT_FAILURE_THRESHOLD = 5


def trigger_threshold_alert(source, failure_count: int, threshold: int) -> None:
    """Log and send an alert for a source over the failure threshold."""
    from .sentry_integration import capture_alert

    message = (
        f"Consecutive failure threshold breached for source {source.id} "
        f"({source.source_url}): {failure_count} consecutive failures"
    )

    logger.warning(message)

    capture_alert(
        message=message,
        level="warning",
        source_id=str(source.id),
        extra_data={
            "failure_count": failure_count,
            "threshold": threshold,
            "last_sync_error": source.last_sync_error,
        },
    )


class FailureTracker:
    """
    Tracks consecutive failures per source on the source row.

    Alerts when a source reaches the configured failure threshold.
    """

    def __init__(self, threshold: int = DEFAULT_FAILURE_THRESHOLD):
        self.threshold = threshold

    def record_failure(self, source) -> int:
        """
        Increment the failure counter of a source.

        Args:
            source: ExternalSource instance, refreshed with the new count

        Returns:
            Failure count after increment
        """
        from availability.models import ExternalSource

        ExternalSource.objects.filter(pk=source.pk).update(
            consecutive_failures=F("consecutive_failures") + 1
        )
        source.refresh_from_db(fields=["consecutive_failures"])
        count = source.consecutive_failures

        logger.debug(
            f"Recorded failure for source {source.id}: "
            f"count={count}, threshold={self.threshold}"
        )

        if count >= self.threshold:
            trigger_threshold_alert(source, count, self.threshold)

        return count

    def record_success(self, source) -> None:
        """Reset the failure counter of a source."""
        from availability.models import ExternalSource

        if source.consecutive_failures:
            logger.info(
                f"Source {source.id} recovered after "
                f"{source.consecutive_failures} consecutive failures"
            )
        ExternalSource.objects.filter(pk=source.pk).update(consecutive_failures=0)
        source.consecutive_failures = 0

    def is_over_threshold(self, source) -> bool:
        return source.consecutive_failures >= self.threshold


_failure_tracker: Optional[FailureTracker] = None


def get_failure_tracker() -> FailureTracker:
    """Get the process-wide failure tracker configured from settings."""
    global _failure_tracker

    if _failure_tracker is None:
        _failure_tracker = FailureTracker(
            threshold=getattr(
                settings, "AVAILABILITY_FAILURE_THRESHOLD", DEFAULT_FAILURE_THRESHOLD
            )
        )

    return _failure_tracker
