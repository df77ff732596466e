"""
Change Detector Service.

Compares a freshly fetched availability against the stored snapshot of a
departure and produces the discrete change events worth notifying.

Rules:
- only fields present in the new fetch are compared
- absent fields keep their previous value in the next snapshot
- the first sync of a departure only sets the baseline
- capacity (total seats) changes raise capacity_changed, never an
  availability event
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from uuid import UUID

from django.conf import settings
from django.utils import timezone

from availability.models import ChangeKind
from availability.types import ChangeEvent, FetchedAvailability, SnapshotValues

logger = logging.getLogger(__name__)


def quantize_price(price: Optional[Decimal], places: Optional[int] = None) -> Optional[Decimal]:
    """Round a price to the currency minor unit."""
    if price is None:
        return None
    if places is None:
        places = getattr(settings, "AVAILABILITY_PRICE_DECIMAL_PLACES", 2)
    return Decimal(price).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def carry_forward(
    previous: Optional[SnapshotValues], fetched: FetchedAvailability
) -> SnapshotValues:
    """
    Build the next snapshot: fetched fields win, unknown fields keep their
    previous value.
    """
    previous = previous or SnapshotValues()
    return SnapshotValues(
        available_seats=(
            fetched.available_seats
            if fetched.available_seats is not None
            else previous.available_seats
        ),
        total_seats=(
            fetched.total_seats if fetched.total_seats is not None else previous.total_seats
        ),
        status=fetched.status if fetched.status is not None else previous.status,
        price=quantize_price(fetched.price) if fetched.price is not None else previous.price,
    )


class ChangeDetector:
    """Derives ChangeEvents from a snapshot/fetch pair. Pure, no I/O."""

    def detect(
        self,
        departure_id: UUID,
        previous: Optional[SnapshotValues],
        fetched: FetchedAvailability,
        now: Optional[datetime] = None,
    ) -> List[ChangeEvent]:
        """
        Compare previous snapshot values with a new fetch.

        Args:
            departure_id: Departure the values belong to
            previous: Stored snapshot values, None on the first sync
            fetched: Newly extracted availability
            now: Event timestamp (defaults to now)

        Returns:
            Ordered list of ChangeEvents, empty when nothing changed
        """
        if previous is None:
            logger.debug(f"No baseline for departure {departure_id}, establishing one")
            return []

        now = now or timezone.now()
        events: List[ChangeEvent] = []

        def emit(kind: str, old, new):
            events.append(
                ChangeEvent(
                    kind=str(kind),
                    departure_id=departure_id,
                    old_value=old,
                    new_value=new,
                    timestamp=now,
                )
            )

        old_available = previous.available_seats
        new_available = fetched.available_seats
        if old_available is not None and new_available is not None:
            if new_available < old_available:
                emit(ChangeKind.AVAILABILITY_DECREASED, old_available, new_available)
            elif new_available > old_available:
                emit(ChangeKind.AVAILABILITY_INCREASED, old_available, new_available)

            if old_available > 0 and new_available == 0:
                emit(ChangeKind.BECAME_FULL, old_available, new_available)
            elif old_available == 0 and new_available > 0:
                emit(ChangeKind.BECAME_AVAILABLE, old_available, new_available)

        old_total = previous.total_seats
        new_total = fetched.total_seats
        if old_total is not None and new_total is not None and old_total != new_total:
            emit(ChangeKind.CAPACITY_CHANGED, old_total, new_total)

        if (
            previous.status
            and fetched.status is not None
            and fetched.status != previous.status
        ):
            emit(ChangeKind.STATUS_CHANGED, previous.status, fetched.status)

        old_price = quantize_price(previous.price)
        new_price = quantize_price(fetched.price)
        if old_price is not None and new_price is not None and old_price != new_price:
            emit(ChangeKind.PRICE_CHANGED, old_price, new_price)

        if events:
            logger.info(
                f"Detected {len(events)} change(s) on departure {departure_id}: "
                f"{', '.join(event.kind for event in events)}"
            )
        return events
