"""
Detailed error context logging for failed sync runs.

- Creates a SyncError record for every failed run
- Stores a truncated excerpt of the raw content for parse failures
- Includes the stack trace of the exception

Usage:
    from availability.monitoring import log_sync_error

    log_sync_error(error=exc, source=source, run=run, state="extracting")
"""

import logging
import traceback
from typing import Any, Dict, Optional

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


def truncate_excerpt(raw_content: Optional[str], length: Optional[int] = None) -> str:
    """Cut raw content down to the configured excerpt length."""
    if not raw_content:
        return ""
    if length is None:
        length = getattr(settings, "AVAILABILITY_ERROR_EXCERPT_LENGTH", 500)
    if len(raw_content) <= length:
        return raw_content
    return raw_content[:length] + "..."


def classify_error(error: Exception) -> str:
    """Map an exception to an ErrorType value."""
    from availability.models import ErrorType

    error_type = getattr(error, "error_type", None)
    if error_type in ErrorType.values:
        return error_type
    return ErrorType.UNKNOWN


def create_sync_error_record(
    source,
    error_type: str,
    message: str,
    run=None,
    response_status: Optional[int] = None,
    raw_content: Optional[str] = None,
    stack_trace: Optional[str] = None,
):
    """
    Create a SyncError record in the database.

    Args:
        source: ExternalSource instance
        error_type: ErrorType value
        message: Error message
        run: SyncRun the failure belongs to
        response_status: HTTP status code for non-2xx responses
        raw_content: Raw fetched content, stored truncated
        stack_trace: Full stack trace if available

    Returns:
        SyncError instance, or None if the record could not be written
    """
    from availability.models import SyncError

    try:
        error_record = SyncError.objects.create(
            source=source,
            run=run,
            url=source.source_url,
            error_type=error_type,
            message=message,
            response_status=response_status,
            raw_excerpt=truncate_excerpt(raw_content),
            stack_trace=stack_trace or "",
            timestamp=timezone.now(),
            resolved=False,
        )
    except Exception as e:
        logger.error(f"Failed to create SyncError record: {e}")
        return None

    logger.debug(
        f"Created SyncError record {error_record.id} for {source.source_url}: {error_type}"
    )
    return error_record


def log_sync_error(
    error: Exception,
    source,
    run=None,
    state: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
):
    """
    Log a failed run to the database and Sentry.

    Returns:
        SyncError instance if the database record was created
    """
    from .sentry_integration import capture_sync_error

    error_type = classify_error(error)
    response_status = getattr(error, "status_code", None)

    logger.error(
        f"Sync failed for source {source.id} in state {state}: "
        f"[{error_type}] {error}"
    )

    error_record = create_sync_error_record(
        source=source,
        error_type=error_type,
        message=str(error),
        run=run,
        response_status=response_status,
        raw_content=getattr(error, "raw_content", None),
        stack_trace="".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
    )

    capture_sync_error(
        error=error,
        source=source,
        state=state,
        extra_context={
            "response_status": response_status,
            "error_type": error_type,
            **(extra_context or {}),
        },
    )

    return error_record
