"""
Delivery backends for notification intents.

The dispatcher hands every eligible intent to the configured backend and
records what it reports. Actual channels (email, SMS, push) live outside
this service; a backend only has to implement deliver().
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from django.conf import settings
from django.utils.module_loading import import_string

from availability.types import DeliveryResult, NotificationIntent

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "availability.services.delivery.LoggingDeliveryBackend"


class BaseDeliveryBackend(ABC):
    """Interface every delivery backend implements."""

    @abstractmethod
    def deliver(self, intent: NotificationIntent) -> DeliveryResult:
        """Hand one intent to the channel and report the outcome."""
        raise NotImplementedError


class LoggingDeliveryBackend(BaseDeliveryBackend):
    """Writes intents to the log. Default for development and tests."""

    def deliver(self, intent: NotificationIntent) -> DeliveryResult:
        event = intent.event
        logger.info(
            f"Notify agency {intent.agency_id}: {event.kind} on departure "
            f"{event.departure_id} ({event.old_value} -> {event.new_value})"
        )
        return DeliveryResult(sent=True)


_backend: Optional[BaseDeliveryBackend] = None


def get_delivery_backend() -> BaseDeliveryBackend:
    """Instantiate the backend named by AVAILABILITY_DELIVERY_BACKEND."""
    global _backend

    path = getattr(settings, "AVAILABILITY_DELIVERY_BACKEND", DEFAULT_BACKEND)
    if _backend is None or _backend.__class__ is not import_string(path):
        _backend = import_string(path)()
    return _backend
