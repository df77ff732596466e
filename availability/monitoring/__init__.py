"""
Monitoring and alerting for source syncs.

- Sentry error tracking with source context
- Consecutive failure tracking on the source row
- Persistent SyncError records with raw content excerpts

Thresholds (configurable):
- Consecutive failures: 5 per source
"""

from .sentry_integration import add_sync_breadcrumb, capture_alert, capture_sync_error
from .failure_tracker import FailureTracker, get_failure_tracker
from .error_logger import create_sync_error_record, log_sync_error, truncate_excerpt

__all__ = [
    "add_sync_breadcrumb",
    "capture_alert",
    "capture_sync_error",
    "FailureTracker",
    "get_failure_tracker",
    "create_sync_error_record",
    "log_sync_error",
    "truncate_excerpt",
]
