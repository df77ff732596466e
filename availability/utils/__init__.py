"""
Utility functions for the availability application.

- scheduling.py: next_sync_at calculation with jitter
- locks.py: per-source sync lock on the Django cache
"""

from .scheduling import (
    calculate_next_sync,
    get_due_sources,
    get_jitter,
    SYNC_INTERVALS,
)
from .locks import clear_queued, is_locked, mark_queued, sync_lock

__all__ = [
    # Scheduling utilities
    "calculate_next_sync",
    "get_due_sources",
    "get_jitter",
    "SYNC_INTERVALS",
    # Locking
    "clear_queued",
    "is_locked",
    "mark_queued",
    "sync_lock",
]
