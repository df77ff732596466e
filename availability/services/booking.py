"""
Booking feed.

Internal reservations are recorded by the booking flow, which updates the
departure's booked seats itself. This module turns such a reservation into
a new_booking event for the dispatcher, bypassing fetch and detection.
The sync snapshot is left alone: it only tracks what the external source
reported.
"""

import logging
from typing import List, Optional

from django.utils import timezone

from availability.models import ChangeKind, Departure
from availability.repository import AvailabilityRepository
from availability.types import ChangeEvent, NotificationIntent
from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


def on_internal_booking(
    departure_id,
    seats_delta: int,
    agency_id=None,
    dispatcher: Optional[NotificationDispatcher] = None,
    repository: Optional[AvailabilityRepository] = None,
) -> List[NotificationIntent]:
    """
    Notify watchers of a departure about a reservation already recorded.

    Args:
        departure_id: Departure that was booked
        seats_delta: Number of seats the reservation took (positive)
        agency_id: Agency that made the booking; its own watchlist entry is
            not notified
        dispatcher: Notification dispatcher (default: ORM-backed)
        repository: Persistence collaborator

    Returns:
        Intents handed to the delivery backend

    Raises:
        ValueError: if seats_delta is not positive
        Departure.DoesNotExist: for an unknown departure
    """
    if seats_delta <= 0:
        raise ValueError(f"seats_delta must be positive (got {seats_delta})")

    dispatcher = dispatcher or NotificationDispatcher()
    repository = repository or AvailabilityRepository()

    departure = Departure.objects.select_related("circuit").get(pk=departure_id)
    available = departure.available_seats

    event = ChangeEvent(
        kind=str(ChangeKind.NEW_BOOKING),
        departure_id=departure.id,
        old_value=available + seats_delta,
        new_value=available,
        timestamp=timezone.now(),
    )

    repository.record_booking(departure)

    logger.info(
        f"Booking of {seats_delta} seat(s) on departure {departure.id} "
        f"by agency {agency_id or '-'}: {available} seat(s) left"
    )

    return dispatcher.dispatch([event], departure.circuit_id, exclude_agency_id=agency_id)
