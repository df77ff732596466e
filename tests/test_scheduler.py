"""
Tests for the in-process SyncScheduler.

The orchestrator and repository are mocked; only pool behaviour is tested.
"""

import threading
import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from availability.scheduler import SyncScheduler


def make_source():
    return SimpleNamespace(id=uuid.uuid4())


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.load_due_sources.return_value = []
    return repo


class BlockingOrchestrator:
    """Orchestrator whose runs wait until released."""

    def __init__(self):
        self.release = threading.Event()
        self.started = []
        self.lock = threading.Lock()

    def run(self, source):
        with self.lock:
            self.started.append(source.id)
        self.release.wait(5)
        return "done"


class TestSyncScheduler:
    """Bounded pool scheduling of due sources."""

    def test_tick_submits_due_sources(self, repository):
        """Every due source is submitted once."""
        sources = [make_source(), make_source()]
        repository.load_due_sources.return_value = sources
        orchestrator = MagicMock()
        scheduler = SyncScheduler(pool_size=2, orchestrator=orchestrator, repository=repository)

        submitted = scheduler.tick()
        scheduler.wait_for_in_flight(timeout=5)
        scheduler.shutdown(wait=True)

        assert submitted == [str(source.id) for source in sources]
        assert orchestrator.run.call_count == 2

    def test_in_flight_source_skipped(self, repository):
        """A source still running is not submitted again on the next tick."""
        source = make_source()
        repository.load_due_sources.return_value = [source]
        orchestrator = BlockingOrchestrator()
        scheduler = SyncScheduler(pool_size=2, orchestrator=orchestrator, repository=repository)

        try:
            first = scheduler.tick()
            second = scheduler.tick()

            assert first == [str(source.id)]
            assert second == []
            assert scheduler.in_flight == {str(source.id)}
        finally:
            orchestrator.release.set()
            scheduler.shutdown(wait=True)

        assert scheduler.in_flight == set()
        assert orchestrator.started == [source.id]

    def test_pool_bounds_concurrency(self, repository):
        """No more than pool_size runs execute at once; the rest wait."""
        sources = [make_source() for _ in range(3)]
        repository.load_due_sources.return_value = sources
        orchestrator = BlockingOrchestrator()
        scheduler = SyncScheduler(pool_size=1, orchestrator=orchestrator, repository=repository)

        try:
            submitted = scheduler.tick()
            assert len(submitted) == 3
            # Give the single worker a moment to pick up the first run
            threading.Event().wait(0.1)
            assert len(orchestrator.started) == 1
        finally:
            orchestrator.release.set()
            scheduler.shutdown(wait=True)

    def test_failed_run_does_not_block_source(self, repository):
        """An exception escaping the orchestrator frees the source for the next tick."""
        source = make_source()
        repository.load_due_sources.return_value = [source]
        orchestrator = MagicMock()
        orchestrator.run.side_effect = RuntimeError("boom")
        scheduler = SyncScheduler(pool_size=1, orchestrator=orchestrator, repository=repository)

        scheduler.tick()
        scheduler.wait_for_in_flight(timeout=5)

        assert orchestrator.run.call_count == 1
        assert scheduler.in_flight == set()
        assert scheduler.tick() == [str(source.id)]

        scheduler.wait_for_in_flight(timeout=5)
        scheduler.shutdown(wait=True)

    def test_shutdown_stops_submissions(self, repository):
        """After shutdown a tick submits nothing."""
        repository.load_due_sources.return_value = [make_source()]
        orchestrator = MagicMock()
        scheduler = SyncScheduler(pool_size=1, orchestrator=orchestrator, repository=repository)

        scheduler.shutdown(wait=True)

        assert scheduler.is_stopping is True
        assert scheduler.tick() == []
        orchestrator.run.assert_not_called()

    def test_shutdown_cancels_queued_runs(self, repository):
        """Queued runs are cancelled; the running one finishes."""
        sources = [make_source() for _ in range(3)]
        repository.load_due_sources.return_value = sources
        orchestrator = BlockingOrchestrator()
        scheduler = SyncScheduler(pool_size=1, orchestrator=orchestrator, repository=repository)

        scheduler.tick()
        threading.Event().wait(0.1)
        cancelled = scheduler.shutdown(wait=False)

        assert cancelled == [str(source.id) for source in sources[1:]]
        assert scheduler.in_flight == {str(sources[0].id)}

        orchestrator.release.set()
        scheduler._executor.shutdown(wait=True)

        assert len(orchestrator.started) == 1
        assert scheduler.in_flight == set()

    def test_run_forever_exits_on_shutdown(self, repository):
        """run_forever returns once shutdown is requested."""
        scheduler = SyncScheduler(pool_size=1, orchestrator=MagicMock(), repository=repository)

        thread = threading.Thread(target=scheduler.run_forever, kwargs={"poll_seconds": 0.05})
        thread.start()
        scheduler.shutdown(wait=True)
        thread.join(timeout=2)

        assert not thread.is_alive()
