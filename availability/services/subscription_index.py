"""
Subscription Index.

Read-only view of who watches a circuit and which change kinds each
watcher wants. Loaded once per dispatch cycle; watchlist edits made while a
cycle runs apply from the next cycle.
"""

import hashlib
import logging
from typing import Dict, List, Optional

from availability.models import ChangeKind, WatchlistSubscription
from availability.repository import AvailabilityRepository

logger = logging.getLogger(__name__)


# Event kind -> subscription flag that must be set to be notified
PREFERENCE_FLAGS: Dict[str, str] = {
    ChangeKind.AVAILABILITY_DECREASED: "notify_on_availability_change",
    ChangeKind.AVAILABILITY_INCREASED: "notify_on_availability_change",
    ChangeKind.BECAME_FULL: "notify_on_availability_change",
    ChangeKind.BECAME_AVAILABLE: "notify_on_availability_change",
    ChangeKind.CAPACITY_CHANGED: "notify_on_availability_change",
    ChangeKind.STATUS_CHANGED: "notify_on_availability_change",
    ChangeKind.PRICE_CHANGED: "notify_on_price_change",
    ChangeKind.NEW_BOOKING: "notify_on_booking",
}


def is_eligible(subscription: WatchlistSubscription, event_kind: str) -> bool:
    """Whether a subscription's flags ask for this kind of event."""
    flag = PREFERENCE_FLAGS.get(str(event_kind))
    if flag is None:
        logger.warning(f"No preference flag for event kind '{event_kind}'")
        return False
    return bool(getattr(subscription, flag))


def make_dedup_key(subscriber_id, departure_id, event_kind: str, new_value) -> str:
    """Stable identity of one (subscriber, departure, kind, new value) observation."""
    raw = f"{subscriber_id}|{departure_id}|{event_kind}|{new_value}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SubscriptionIndex:
    """Watchlist lookup for one circuit."""

    def __init__(self, repository: Optional[AvailabilityRepository] = None):
        self.repository = repository or AvailabilityRepository()

    def load(self, circuit_id) -> List[WatchlistSubscription]:
        """Subscriptions of a circuit held by active agencies."""
        return [
            subscription
            for subscription in self.repository.load_subscriptions(circuit_id)
            if subscription.agency.is_active
        ]

    def subscribers_for(
        self,
        subscriptions: List[WatchlistSubscription],
        event_kind: str,
        exclude_agency_id=None,
    ) -> List[WatchlistSubscription]:
        """Filter loaded subscriptions down to those eligible for an event kind."""
        return [
            subscription
            for subscription in subscriptions
            if is_eligible(subscription, event_kind)
            and (exclude_agency_id is None or subscription.agency_id != exclude_agency_id)
        ]
