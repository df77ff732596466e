"""
In-process sync scheduler.

Polls for due sources and runs them on a bounded thread pool. Used by the
run_sync_scheduler management command when Celery beat is not deployed.

- At most pool_size syncs run at once; further due sources wait in the
  pool queue rather than being dropped
- A source already queued or running is skipped for the tick
- shutdown() stops new submissions; running syncs finish, queued ones are
  cancelled and dropped from the in-flight map
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import partial
from typing import Dict, List, Optional, Set

from django.conf import settings
from django.db import close_old_connections

from availability.repository import AvailabilityRepository

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Bounded worker-pool scheduler for ExternalSource syncs.

    Args:
        pool_size: Max concurrent syncs (default AVAILABILITY_SYNC_POOL_SIZE)
        orchestrator: SyncOrchestrator used for every run
        repository: Source lookup
    """

    def __init__(
        self,
        pool_size: Optional[int] = None,
        orchestrator=None,
        repository: Optional[AvailabilityRepository] = None,
    ):
        if orchestrator is None:
            from availability.services import SyncOrchestrator

            orchestrator = SyncOrchestrator()

        self.pool_size = pool_size or getattr(settings, "AVAILABILITY_SYNC_POOL_SIZE", 4)
        self.orchestrator = orchestrator
        self.repository = repository or AvailabilityRepository()

        self._executor = ThreadPoolExecutor(
            max_workers=self.pool_size, thread_name_prefix="availability-sync"
        )
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._stopping = threading.Event()

    @property
    def in_flight(self) -> Set[str]:
        with self._lock:
            return set(self._in_flight)

    @property
    def is_stopping(self) -> bool:
        return self._stopping.is_set()

    def tick(self, now=None) -> List[str]:
        """
        Submit every due source that is not already in flight.

        Returns:
            IDs of the sources submitted on this tick
        """
        if self._stopping.is_set():
            return []

        submitted = []
        for source in self.repository.load_due_sources(now=now):
            key = str(source.id)
            with self._lock:
                if self._stopping.is_set():
                    break
                if key in self._in_flight:
                    logger.debug(f"Source {key} still in flight, skipping this tick")
                    continue
                future = self._executor.submit(self._run_source, source)
                self._in_flight[key] = future
            future.add_done_callback(partial(self._finished, key))
            submitted.append(key)

        if submitted:
            logger.info(f"Scheduler tick submitted {len(submitted)} source(s)")
        return submitted

    def _run_source(self, source):
        try:
            return self.orchestrator.run(source)
        except Exception:
            # The orchestrator records its own failures; this only guards the pool
            logger.exception(f"Unhandled error running source {source.id}")
            return None
        finally:
            close_old_connections()
            # Cleared before the future completes
            with self._lock:
                self._in_flight.pop(str(source.id), None)

    def _finished(self, key: str, future: Future) -> None:
        # Covers runs cancelled before they started
        with self._lock:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    def wait_for_in_flight(self, timeout: Optional[float] = None) -> None:
        """Block until every submitted run has finished."""
        with self._lock:
            futures = list(self._in_flight.values())
        wait(futures, timeout=timeout)

    def run_forever(self, poll_seconds: Optional[float] = None) -> None:
        """Tick until shutdown() is called."""
        if poll_seconds is None:
            poll_seconds = getattr(settings, "AVAILABILITY_SCHEDULER_POLL_SECONDS", 30)

        logger.info(
            f"Sync scheduler started: pool size {self.pool_size}, poll every {poll_seconds}s"
        )
        while not self._stopping.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            finally:
                close_old_connections()
            self._stopping.wait(poll_seconds)

    def shutdown(self, wait: bool = True) -> List[str]:
        """
        Stop scheduling; running syncs finish, queued ones are cancelled.

        A cancelled source leaves the in-flight map and is picked up again
        by the next scheduler once it is due.

        Returns:
            IDs of the sources whose queued runs were cancelled
        """
        first_call = not self._stopping.is_set()
        self._stopping.set()

        with self._lock:
            pending = list(self._in_flight.items())

        cancelled = []
        for key, future in pending:
            if future.cancel():
                logger.info(f"Cancelled queued sync for source {key}")
                cancelled.append(key)

        if first_call:
            logger.info(
                f"Sync scheduler stopping: {len(pending) - len(cancelled)} run(s) finishing, "
                f"{len(cancelled)} queued run(s) cancelled"
            )
        self._executor.shutdown(wait=wait, cancel_futures=True)
        return cancelled
