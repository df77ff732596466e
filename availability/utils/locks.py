"""
Per-source sync lock on the Django cache.

cache.add is atomic on Redis and on the local-memory backend, so at most one
run per source holds the lock at a time, across processes when the cache is
shared. The lock expires on its own if a worker dies while holding it.
"""

import logging
from contextlib import contextmanager

from django.conf import settings
from django.core.cache import cache

from availability.exceptions import SyncInProgress

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "availability:sync-lock:"


def lock_key(source_id) -> str:
    return f"{LOCK_KEY_PREFIX}{source_id}"


def is_locked(source_id) -> bool:
    return cache.get(lock_key(source_id)) is not None


@contextmanager
def sync_lock(source_id, timeout=None):
    """
    Hold the sync lock of a source for the duration of the block.

    Raises:
        SyncInProgress: if another run already holds the lock
    """
    if timeout is None:
        timeout = getattr(settings, "AVAILABILITY_SYNC_LOCK_TIMEOUT", 600)

    key = lock_key(source_id)
    if not cache.add(key, "locked", timeout):
        logger.info(f"Sync lock for source {source_id} is held, skipping")
        raise SyncInProgress(source_id)

    try:
        yield
    finally:
        cache.delete(key)


QUEUED_KEY_PREFIX = "availability:sync-queued:"


def mark_queued(source_id, timeout=None) -> bool:
    """
    Flag a source as queued for a worker.

    Returns:
        False if the source is already queued, so it is never queued twice
    """
    if timeout is None:
        timeout = getattr(settings, "AVAILABILITY_SYNC_LOCK_TIMEOUT", 600)
    return cache.add(f"{QUEUED_KEY_PREFIX}{source_id}", "queued", timeout)


def clear_queued(source_id) -> None:
    cache.delete(f"{QUEUED_KEY_PREFIX}{source_id}")
