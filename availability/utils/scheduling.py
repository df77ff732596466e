"""
Scheduling utilities for ExternalSource next_sync_at calculation.

The next sync is one frequency interval after the run, plus a random jitter
so sources configured together do not all hit their partners at once.
Failures do not back off: the next scheduled sync is the retry.
"""

import random
from datetime import timedelta

from django.conf import settings
from django.utils import timezone


# Base intervals for sync frequencies
SYNC_INTERVALS = {
    "hourly": timedelta(hours=1),
    "daily": timedelta(hours=24),
    "weekly": timedelta(days=7),
    "manual": None,  # Manual sources are never scheduled
}


def get_jitter(max_seconds=None) -> timedelta:
    """Random delay in [0, max_seconds]."""
    if max_seconds is None:
        max_seconds = getattr(settings, "AVAILABILITY_SYNC_JITTER_SECONDS", 300)
    if max_seconds <= 0:
        return timedelta(0)
    return timedelta(seconds=random.uniform(0, max_seconds))


def calculate_next_sync(sync_frequency: str, from_time=None, jitter_seconds=None):
    """
    Calculate the next sync time for a frequency.

    Args:
        sync_frequency: One of 'hourly', 'daily', 'weekly', 'manual'
        from_time: Base time to calculate from (defaults to now)
        jitter_seconds: Upper bound of the random jitter (default from settings)

    Returns:
        datetime or None: Next sync time, or None for manual sources
    """
    if from_time is None:
        from_time = timezone.now()

    interval = SYNC_INTERVALS.get(sync_frequency)

    if interval is None:
        return None

    return from_time + interval + get_jitter(jitter_seconds)


def get_due_sources(now=None):
    """
    Get all active, scheduled sources that are due to sync.

    Sources that never ran (no next_sync_at) are due immediately.

    Returns:
        QuerySet: ExternalSource instances, the most overdue first
    """
    from availability.repository import AvailabilityRepository

    return AvailabilityRepository().load_due_sources(now=now)
