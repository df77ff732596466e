"""
Persistence for the sync engine.

Wraps every read and write the engine makes against the Django ORM:
snapshots, subscriptions, sources, and sync outcomes. A successful sync
is written in one transaction so a departure never carries a partially
applied snapshot.
"""

import logging
from datetime import date
from typing import List, Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from availability.exceptions import ValidationError
from availability.models import (
    AvailabilityHistory,
    AvailabilitySnapshot,
    Departure,
    DepartureStatus,
    ExternalSource,
    HistoryOrigin,
    SyncFrequency,
    SyncStatus,
    WatchlistSubscription,
)
from availability.types import FetchedAvailability, SnapshotValues

logger = logging.getLogger(__name__)


class AvailabilityRepository:
    """ORM-backed persistence used by the orchestrator and dispatcher."""

    def load_snapshot(self, departure_id) -> Optional[SnapshotValues]:
        """Stored baseline for a departure, None if it was never synced."""
        try:
            snapshot = AvailabilitySnapshot.objects.get(departure_id=departure_id)
        except AvailabilitySnapshot.DoesNotExist:
            return None
        return SnapshotValues(
            available_seats=snapshot.available_seats,
            total_seats=snapshot.total_seats,
            status=snapshot.status or None,
            price=snapshot.price,
        )

    def save_snapshot(
        self,
        departure: Departure,
        values: SnapshotValues,
        fetched: FetchedAvailability,
        source: Optional[ExternalSource] = None,
    ) -> AvailabilitySnapshot:
        """
        Replace the snapshot and apply the fetch to the departure atomically.

        The snapshot takes the carried-forward values. The departure only
        takes the fields present in the fetch: total_seats as reported, and
        booked_seats derived as total - available when available is reported.
        """
        now = timezone.now()

        with transaction.atomic():
            departure.refresh_from_db()

            update_fields = ["last_synced_at", "updated_at"]
            if fetched.total_seats is not None:
                departure.total_seats = fetched.total_seats
                update_fields.append("total_seats")
            if fetched.available_seats is not None:
                departure.booked_seats = departure.total_seats - fetched.available_seats
                update_fields.append("booked_seats")
            if fetched.status is not None:
                departure.status = fetched.status
                update_fields.append("status")
            if values.price is not None and fetched.price is not None:
                departure.price_override = values.price
                update_fields.append("price_override")
            departure.last_synced_at = now
            departure.save(update_fields=update_fields)

            snapshot, _ = AvailabilitySnapshot.objects.update_or_create(
                departure=departure,
                defaults={
                    "source": source,
                    "available_seats": values.available_seats,
                    "total_seats": values.total_seats,
                    "status": values.status or "",
                    "price": values.price,
                    "captured_at": now,
                },
            )

            AvailabilityHistory.objects.create(
                departure=departure,
                origin=HistoryOrigin.SYNC,
                available_seats=values.available_seats,
                booked_seats=departure.booked_seats,
                total_seats=departure.total_seats,
                status=departure.status,
                price=values.price,
                synced_from_url=source.source_url if source else "",
                recorded_at=now,
            )

        logger.debug(f"Saved snapshot for departure {departure.id}: {values}")
        return snapshot

    def record_booking(self, departure: Departure) -> AvailabilityHistory:
        """Append a history entry for an internally recorded booking."""
        return AvailabilityHistory.objects.create(
            departure=departure,
            origin=HistoryOrigin.BOOKING,
            available_seats=departure.available_seats,
            booked_seats=departure.booked_seats,
            total_seats=departure.total_seats,
            status=departure.status,
            price=departure.price_override,
        )

    def load_subscriptions(self, circuit_id) -> List[WatchlistSubscription]:
        """All watchlist entries of a circuit, with their agency."""
        return list(
            WatchlistSubscription.objects.filter(circuit_id=circuit_id)
            .select_related("agency")
            .order_by("created_at")
        )

    def load_active_sources(self):
        """Active sources the scheduler may trigger (manual frequency excluded)."""
        return (
            ExternalSource.objects.filter(is_active=True)
            .exclude(sync_frequency=SyncFrequency.MANUAL)
            .select_related("circuit")
        )

    def load_due_sources(self, now=None):
        now = now or timezone.now()
        return self.load_active_sources().filter(
            Q(next_sync_at__isnull=True) | Q(next_sync_at__lte=now)
        ).order_by("next_sync_at")

    def resolve_departure(
        self, source: ExternalSource, fetched: Optional[FetchedAvailability] = None
    ) -> Departure:
        """
        Pick the departure a source run applies to.

        Order: the source's explicit departure, then the circuit departure
        starting on the fetched next departure date, then the circuit's
        earliest upcoming non-cancelled departure.
        """
        if source.departure_id:
            return Departure.objects.select_related("circuit").get(pk=source.departure_id)

        departures = Departure.objects.select_related("circuit").filter(
            circuit_id=source.circuit_id
        )

        if fetched is not None and fetched.next_departure_date:
            match = departures.filter(start_date=fetched.next_departure_date).first()
            if match is not None:
                return match

        upcoming = (
            departures.filter(start_date__gte=date.today())
            .exclude(status=DepartureStatus.CANCELLED)
            .order_by("start_date")
            .first()
        )
        if upcoming is None:
            raise ValidationError(
                f"No departure to sync for circuit {source.circuit_id}"
            )
        return upcoming

    def record_sync_outcome(
        self,
        source: ExternalSource,
        success: bool,
        error_message: str = "",
        next_sync_at=None,
    ) -> ExternalSource:
        """
        Write the outcome fields of a source.

        Uses a single UPDATE so concurrent operator edits to the
        configuration fields are not overwritten. consecutive_failures is
        maintained by the FailureTracker.
        """
        now = timezone.now()
        fields = {
            "last_sync_status": SyncStatus.SUCCESS if success else SyncStatus.ERROR,
            "last_sync_error": "" if success else error_message,
            "last_sync_at": now,
            "next_sync_at": next_sync_at,
            "updated_at": now,
        }

        ExternalSource.objects.filter(pk=source.pk).update(**fields)
        for name, value in fields.items():
            setattr(source, name, value)
        return source
