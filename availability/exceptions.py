"""
Exceptions raised while synchronizing a source.

All of them end the current sync run early. The orchestrator records them on
the ExternalSource and never lets them reach the scheduler.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for errors that terminate a sync run."""

    error_type = "unknown"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FetchError(SyncError):
    """Network failure, timeout, or non-2xx response from the source."""

    error_type = "connection"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out
        if timed_out:
            self.error_type = "timeout"
        elif status_code is not None:
            self.error_type = "http_status"


class ExtractionError(SyncError):
    """Fetched content could not be parsed at all."""

    error_type = "parse"

    def __init__(self, message: str, raw_content: str = ""):
        super().__init__(message)
        self.raw_content = raw_content


class ValidationError(SyncError):
    """Extracted values fail sanity checks (e.g. available > total)."""

    error_type = "validation"


class SyncInProgress(Exception):
    """Another run for the same source holds the sync lock."""

    def __init__(self, source_id):
        super().__init__(f"Sync already in progress for source {source_id}")
        self.source_id = source_id
