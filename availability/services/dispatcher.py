"""
Notification Dispatcher.

Maps change events to eligible subscribers and hands at most one intent per
dedup key and suppression window to the delivery backend. Every intent
handed off is written to NotificationLog, whatever the delivery outcome, so
a failed send is not re-triggered by the next identical detection.
"""

import logging
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from availability.models import DeliveryStatus, NotificationLog
from availability.types import ChangeEvent, NotificationIntent
from .delivery import BaseDeliveryBackend, get_delivery_backend
from .subscription_index import SubscriptionIndex, make_dedup_key

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Fans change events out to watchers of a circuit.

    Args:
        index: Subscription lookup (default: ORM-backed)
        backend: Delivery backend (default: AVAILABILITY_DELIVERY_BACKEND)
        suppression_hours: Dedup window (default from settings)
    """

    def __init__(
        self,
        index: Optional[SubscriptionIndex] = None,
        backend: Optional[BaseDeliveryBackend] = None,
        suppression_hours: Optional[int] = None,
    ):
        self.index = index or SubscriptionIndex()
        self.backend = backend
        self.suppression_hours = (
            suppression_hours
            if suppression_hours is not None
            else getattr(settings, "AVAILABILITY_NOTIFICATION_SUPPRESSION_HOURS", 24)
        )

    def build_intents(
        self,
        events: List[ChangeEvent],
        circuit_id,
        exclude_agency_id=None,
    ) -> List[NotificationIntent]:
        """One intent per (eligible subscriber, event) pair, before dedup."""
        if not events:
            return []

        subscriptions = self.index.load(circuit_id)
        intents = []
        for event in events:
            for subscription in self.index.subscribers_for(
                subscriptions, event.kind, exclude_agency_id=exclude_agency_id
            ):
                intents.append(
                    NotificationIntent(
                        subscriber_id=subscription.id,
                        agency_id=subscription.agency_id,
                        event=event,
                        dedup_key=make_dedup_key(
                            subscription.id, event.departure_id, event.kind, event.new_value
                        ),
                    )
                )
        return intents

    def dispatch(
        self,
        events: List[ChangeEvent],
        circuit_id,
        exclude_agency_id=None,
    ) -> List[NotificationIntent]:
        """
        Deliver the eligible, non-duplicate intents for a batch of events.

        Returns:
            Intents handed to the delivery backend
        """
        intents = self.build_intents(events, circuit_id, exclude_agency_id)
        if not intents:
            return []

        backend = self.backend or get_delivery_backend()
        dispatched = []

        for intent in intents:
            log = self._claim(intent)
            if log is None:
                logger.debug(
                    f"Suppressed duplicate {intent.event.kind} for agency {intent.agency_id}"
                )
                continue

            self._deliver(backend, intent, log)
            dispatched.append(intent)

        logger.info(
            f"Dispatched {len(dispatched)} of {len(intents)} notification intent(s) "
            f"for circuit {circuit_id}"
        )
        return dispatched

    def _claim(self, intent: NotificationIntent) -> Optional[NotificationLog]:
        """Record the intent unless its dedup key is inside the suppression window."""
        event = intent.event
        with transaction.atomic():
            duplicate = (
                NotificationLog.objects.within_window(self.suppression_hours)
                .filter(dedup_key=intent.dedup_key)
                .exists()
            )
            if duplicate:
                return None
            return NotificationLog.objects.create(
                dedup_key=intent.dedup_key,
                agency_id=intent.agency_id,
                departure_id=event.departure_id,
                event_kind=event.kind,
                old_value=_as_text(event.old_value),
                new_value=_as_text(event.new_value),
                status=DeliveryStatus.PENDING,
            )

    def _deliver(self, backend, intent: NotificationIntent, log: NotificationLog) -> None:
        try:
            result = backend.deliver(intent)
        except Exception as e:
            logger.exception(f"Delivery backend raised for intent {intent.dedup_key}")
            log.status = DeliveryStatus.FAILED
            log.error_message = str(e)
        else:
            if result.sent:
                log.status = DeliveryStatus.SENT
                log.delivered_at = timezone.now()
            else:
                logger.warning(
                    f"Delivery failed for agency {intent.agency_id}: {result.error}"
                )
                log.status = DeliveryStatus.FAILED
                log.error_message = result.error or ""
        log.save(update_fields=["status", "error_message", "delivered_at"])


def _as_text(value) -> str:
    return "" if value is None else str(value)
