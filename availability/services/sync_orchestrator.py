"""
Sync Orchestrator.

Drives one sync cycle for one ExternalSource:

    idle -> fetching -> extracting -> detecting -> persisted -> idle

    fetching, extracting or detecting -> error -> idle

Runs for the same source are serialized by a cache lock; a run that finds
the lock held is skipped. Every failure ends the run early, is recorded on
the source and in a SyncError row, and is never raised to the caller. An
errored run leaves the snapshot and the departure untouched and emits no
events; the next scheduled cycle is the retry.
"""

import logging
from typing import Callable, List, Optional

from asgiref.sync import async_to_sync
from django.utils import timezone

from availability.exceptions import SyncError, SyncInProgress, ValidationError
from availability.fetchers import FetchResponse, SourceFetcher
from availability.models import (
    Departure,
    DepartureStatus,
    ErrorType,
    ExternalSource,
    SourceKind,
    SyncRun,
    SyncRunStatus,
    SyncState,
)
from availability.monitoring import add_sync_breadcrumb, get_failure_tracker, log_sync_error
from availability.repository import AvailabilityRepository
from availability.types import ChangeEvent, FetchedAvailability, SnapshotValues, SyncOutcome
from availability.utils.locks import sync_lock
from availability.utils.scheduling import calculate_next_sync
from .change_detector import ChangeDetector, carry_forward
from .dispatcher import NotificationDispatcher
from .field_extractor import FieldExtractor, fill_full_status

logger = logging.getLogger(__name__)


def validate_values(
    fetched: FetchedAvailability, values: SnapshotValues, departure: Departure
) -> None:
    """
    Sanity checks on a fetch before anything is written.

    Raises:
        ValidationError: on negative counts, a capacity below one,
            more seats available than exist, a capacity below the
            seats already booked, or a status outside DepartureStatus
    """
    if fetched.status is not None and fetched.status not in DepartureStatus.values:
        raise ValidationError(f"status '{fetched.status}' is not a departure status")

    for name in ("available_seats", "total_seats"):
        value = getattr(fetched, name)
        if value is not None and value < 0:
            raise ValidationError(f"{name} is negative ({value})")

    if fetched.total_seats is not None and fetched.total_seats < 1:
        raise ValidationError(f"total_seats must be at least 1 (got {fetched.total_seats})")

    if fetched.price is not None and fetched.price < 0:
        raise ValidationError(f"price is negative ({fetched.price})")

    total = fetched.total_seats if fetched.total_seats is not None else departure.total_seats
    if fetched.available_seats is not None and fetched.available_seats > total:
        raise ValidationError(
            f"available_seats ({fetched.available_seats}) exceeds total_seats ({total})"
        )

    if fetched.available_seats is None and fetched.total_seats is not None:
        if fetched.total_seats < departure.booked_seats:
            raise ValidationError(
                f"total_seats ({fetched.total_seats}) is below booked seats "
                f"({departure.booked_seats})"
            )

    if (
        values.available_seats is not None
        and values.total_seats is not None
        and values.available_seats > values.total_seats
    ):
        raise ValidationError(
            f"available_seats ({values.available_seats}) exceeds total_seats "
            f"({values.total_seats}) after carry-forward"
        )


class SyncOrchestrator:
    """
    Runs the sync state machine for a source.

    Collaborators are injectable so tests can stub the network and the
    delivery backend.

    Args:
        repository: Persistence collaborator
        fetcher_factory: Callable returning a SourceFetcher (async context manager)
        extractor: Field extractor
        detector: Change detector
        dispatcher: Notification dispatcher
        failure_tracker: Consecutive failure tracker
    """

    def __init__(
        self,
        repository: Optional[AvailabilityRepository] = None,
        fetcher_factory: Optional[Callable[[], SourceFetcher]] = None,
        extractor: Optional[FieldExtractor] = None,
        detector: Optional[ChangeDetector] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        failure_tracker=None,
    ):
        self.repository = repository or AvailabilityRepository()
        self.fetcher_factory = fetcher_factory or SourceFetcher
        self.extractor = extractor or FieldExtractor()
        self.detector = detector or ChangeDetector()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.failure_tracker = failure_tracker or get_failure_tracker()

    def run(
        self,
        source: ExternalSource,
        manual: bool = False,
        manual_values: Optional[FetchedAvailability] = None,
    ) -> SyncOutcome:
        """
        Run one sync cycle for a source.

        Args:
            source: ExternalSource to sync
            manual: True for an operator-initiated run
            manual_values: Operator-entered availability, used instead of a
                fetch (required for manual-kind sources)

        Returns:
            SyncOutcome with status success, error, or skipped
        """
        try:
            with sync_lock(source.id):
                return self._run_locked(source, manual, manual_values)
        except SyncInProgress as e:
            SyncRun.objects.create(
                source=source,
                is_manual=manual,
                status=SyncRunStatus.SKIPPED,
                state=SyncState.IDLE,
                completed_at=timezone.now(),
                error_message=str(e),
            )
            return SyncOutcome(
                source_id=source.id,
                status="skipped",
                state=SyncState.IDLE,
                error=str(e),
            )

    def _run_locked(
        self,
        source: ExternalSource,
        manual: bool,
        manual_values: Optional[FetchedAvailability],
    ) -> SyncOutcome:
        run = SyncRun.objects.create(source=source, is_manual=manual)
        state = SyncState.IDLE

        logger.info(
            f"Starting {'manual ' if manual else ''}sync for source {source.id} "
            f"({source.source_kind}) run {run.id}"
        )

        try:
            if manual_values is not None or source.source_kind == SourceKind.MANUAL:
                if manual_values is None:
                    raise ValidationError(
                        "Manual source needs operator-entered values to sync"
                    )
                fetched = fill_full_status(manual_values)
            else:
                state = self._advance(run, source, SyncState.FETCHING)
                response = self._fetch(source)

                state = self._advance(run, source, SyncState.EXTRACTING)
                fetched = self.extractor.extract(
                    response.content, source.source_kind, source.extraction_rules
                )

            state = self._advance(run, source, SyncState.DETECTING)
            departure = self.repository.resolve_departure(source, fetched)
            run.departure = departure

            previous = self.repository.load_snapshot(departure.id)
            values = carry_forward(previous, fetched)
            validate_values(fetched, values, departure)

            events = self.detector.detect(departure.id, previous, fetched)
            self.repository.save_snapshot(departure, values, fetched, source=source)
            state = self._advance(run, source, SyncState.PERSISTED)

        except SyncError as e:
            return self._fail(source, run, state, e)
        except Exception as e:
            logger.exception(f"Unexpected error syncing source {source.id}")
            return self._fail(source, run, state, e)

        dispatched = self._dispatch(events, departure, source)

        self.repository.record_sync_outcome(
            source,
            success=True,
            next_sync_at=calculate_next_sync(source.sync_frequency),
        )
        self.failure_tracker.record_success(source)

        run.events_detected = len(events)
        run.notifications_dispatched = dispatched
        run.complete(success=True)

        logger.info(
            f"Sync succeeded for source {source.id}: departure {departure.id}, "
            f"{len(events)} event(s), {dispatched} notification(s)"
        )

        return SyncOutcome(
            source_id=source.id,
            status="success",
            state=SyncState.PERSISTED,
            departure_id=departure.id,
            run_id=run.id,
            events=events,
            notifications_dispatched=dispatched,
        )

    def _advance(self, run: SyncRun, source: ExternalSource, state: str) -> str:
        run.advance(state)
        add_sync_breadcrumb(
            source_id=str(source.id),
            url=source.source_url,
            state=state,
            message=f"Sync entered {state}",
        )
        return state

    def _fetch(self, source: ExternalSource) -> FetchResponse:
        async def fetch():
            async with self.fetcher_factory() as fetcher:
                return await fetcher.fetch(source)

        return async_to_sync(fetch)()

    def _dispatch(
        self, events: List[ChangeEvent], departure: Departure, source: ExternalSource
    ) -> int:
        """Hand events to the dispatcher. The snapshot is already persisted."""
        if not events:
            return 0
        try:
            intents = self.dispatcher.dispatch(events, departure.circuit_id)
        except Exception:
            logger.exception(
                f"Dispatch failed for source {source.id}, departure {departure.id}"
            )
            return 0
        return len(intents)

    def _fail(
        self, source: ExternalSource, run: SyncRun, state: str, error: Exception
    ) -> SyncOutcome:
        message = str(error) or type(error).__name__
        error_type = getattr(error, "error_type", ErrorType.UNKNOWN)

        log_sync_error(error, source, run=run, state=state)

        self.repository.record_sync_outcome(
            source,
            success=False,
            error_message=message,
            next_sync_at=calculate_next_sync(source.sync_frequency),
        )
        self.failure_tracker.record_failure(source)

        run.events_detected = 0
        run.notifications_dispatched = 0
        run.complete(success=False, error_message=message)

        logger.warning(
            f"Sync failed for source {source.id} in state {state}: [{error_type}] {message}"
        )

        return SyncOutcome(
            source_id=source.id,
            status="error",
            state=SyncState.ERROR,
            departure_id=run.departure_id,
            run_id=run.id,
            error=message,
            error_type=str(error_type),
        )


def trigger_manual_sync(
    source_id,
    manual_values: Optional[FetchedAvailability] = None,
    orchestrator: Optional[SyncOrchestrator] = None,
) -> SyncOutcome:
    """
    Operator-initiated sync of one source, run synchronously.

    Runs regardless of the source's frequency and active flag.

    Raises:
        ExternalSource.DoesNotExist: for an unknown source
    """
    source = ExternalSource.objects.select_related("circuit").get(pk=source_id)
    orchestrator = orchestrator or SyncOrchestrator()
    return orchestrator.run(source, manual=True, manual_values=manual_values)
