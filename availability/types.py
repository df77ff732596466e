"""
Value objects passed between the sync pipeline stages.

None of these are persisted as such; the repository maps them onto models.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional
from uuid import UUID


@dataclass
class FetchedAvailability:
    """
    Availability extracted from one fetch.

    Every field is independently optional: None means the source did not
    report it (unset rule or no match), never "zero".
    """

    available_seats: Optional[int] = None
    total_seats: Optional[int] = None
    status: Optional[str] = None
    price: Optional[Decimal] = None
    next_departure_date: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "available_seats": self.available_seats,
            "total_seats": self.total_seats,
            "status": self.status,
            "price": str(self.price) if self.price is not None else None,
            "next_departure_date": (
                self.next_departure_date.isoformat() if self.next_departure_date else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FetchedAvailability":
        """
        Build from operator input or a task payload; missing keys are unknown.

        Status text is mapped the same way as extracted status text.

        Raises:
            TypeError: if data is not a mapping
            ValueError: on a non-integral seat count, unknown status, or bad date
        """
        from availability.services.field_extractor import parse_status

        if not isinstance(data, Mapping):
            raise TypeError(f"expected an object, got {type(data).__name__}")

        status = None
        raw_status = data.get("status")
        if raw_status not in (None, ""):
            status = parse_status(raw_status)
            if status is None:
                raise ValueError(f"unknown status '{raw_status}'")

        price = data.get("price")
        next_date = data.get("next_departure_date")
        if isinstance(next_date, str):
            next_date = date.fromisoformat(next_date)

        return cls(
            available_seats=_optional_int(data.get("available_seats"), "available_seats"),
            total_seats=_optional_int(data.get("total_seats"), "total_seats"),
            status=status,
            price=Decimal(str(price)) if price not in (None, "") else None,
            next_departure_date=next_date,
        )


@dataclass(frozen=True)
class SnapshotValues:
    """The comparison baseline: last known (available, total, status, price)."""

    available_seats: Optional[int] = None
    total_seats: Optional[int] = None
    status: Optional[str] = None
    price: Optional[Decimal] = None


@dataclass(frozen=True)
class ChangeEvent:
    """A discrete, meaningful change on one departure."""

    kind: str
    departure_id: UUID
    old_value: Any
    new_value: Any
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "departure_id": str(self.departure_id),
            "old_value": _plain(self.old_value),
            "new_value": _plain(self.new_value),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class NotificationIntent:
    """One notification to hand to the delivery backend."""

    subscriber_id: UUID
    agency_id: UUID
    event: ChangeEvent
    dedup_key: str


@dataclass
class DeliveryResult:
    """Result reported by the delivery backend for one intent."""

    sent: bool
    error: Optional[str] = None


@dataclass
class SyncOutcome:
    """Result of one run of the sync state machine."""

    source_id: UUID
    status: str
    state: str
    departure_id: Optional[UUID] = None
    run_id: Optional[UUID] = None
    events: List[ChangeEvent] = field(default_factory=list)
    notifications_dispatched: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        return {
            "source_id": str(self.source_id),
            "status": self.status,
            "state": self.state,
            "departure_id": str(self.departure_id) if self.departure_id else None,
            "run_id": str(self.run_id) if self.run_id else None,
            "events": [event.to_dict() for event in self.events],
            "notifications_dispatched": self.notifications_dispatched,
            "error": self.error,
            "error_type": self.error_type,
        }


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


def _optional_int(value: Any, name: str) -> Optional[int]:
    """Seat count from operator input; whole numbers only."""
    if value in (None, ""):
        return None
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a whole number (got {value!r})")
    if isinstance(value, (float, Decimal)):
        if value != int(value):
            raise ValueError(f"{name} must be a whole number (got {value!r})")
        return int(value)
    if isinstance(value, str):
        value = value.strip()
    return int(value)
