"""
Sentry error tracking for source syncs.

- Tags events with the source and circuit being synced
- Adds breadcrumbs for each state transition of a run
- Filters credentials out of custom headers and extra context

Usage:
    from availability.monitoring import capture_sync_error

    try:
        response = await fetcher.fetch(source)
    except FetchError as e:
        capture_sync_error(error=e, source=source, state="fetching")
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "cookies",
    "cookie",
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "auth",
    "password",
    "secret",
    "token",
    "x-api-key",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace values whose key looks like a credential, recursively."""
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value
    return filtered


def add_sync_breadcrumb(
    source_id: str,
    url: str,
    state: str,
    message: str = "Sync operation",
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a breadcrumb for a sync run step.

    Args:
        source_id: ID of the ExternalSource
        url: Source URL
        state: Sync state the run is in
        message: Description of the step
        level: Log level (info, warning, error)
        extra_data: Additional context, filtered for credentials
    """
    data = {"source": source_id, "url": url, "state": state}
    if extra_data:
        data.update(_filter_sensitive_data(extra_data))

    try:
        sentry_sdk.add_breadcrumb(category="sync", message=message, level=level, data=data)
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_sync_error(
    error: Exception,
    source=None,
    state: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a sync failure to Sentry with source context.

    Args:
        error: The exception that ended the run
        source: ExternalSource instance (optional)
        state: Sync state the run failed in
        extra_context: Additional context (filtered for sensitive data)
    """
    source_id = str(source.id) if source else "unknown"
    url = source.source_url if source else "unknown"

    add_sync_breadcrumb(
        source_id=source_id,
        url=url,
        state=state or "unknown",
        message=f"Error: {type(error).__name__}",
        level="error",
        extra_data=extra_context,
    )

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("sync.source", source_id)
            scope.set_tag("sync.state", state or "unknown")
            scope.set_tag("sync.error_type", getattr(error, "error_type", "unknown"))

            if source is not None:
                scope.set_extra("circuit_id", str(source.circuit_id))
                scope.set_extra("source_url", url)
                scope.set_extra(
                    "custom_headers", _filter_sensitive_data(source.custom_headers or {})
                )
            if extra_context:
                scope.set_extra("sync_context", _filter_sensitive_data(extra_context))

            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")


def capture_alert(
    message: str,
    level: str = "warning",
    source_id: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """Capture a threshold alert message to Sentry."""
    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("alert.type", "threshold_breach")
            if source_id:
                scope.set_tag("sync.source", source_id)
            if extra_data:
                scope.set_extra("alert_data", _filter_sensitive_data(extra_data))

            sentry_sdk.capture_message(message, level=level)

    except Exception as e:
        logger.warning(f"Failed to capture alert to Sentry: {e}")
