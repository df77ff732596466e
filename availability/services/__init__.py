"""
Services for the availability sync engine.

- FieldExtractor: raw HTML/JSON -> FetchedAvailability
- ChangeDetector: snapshot vs fetch -> ChangeEvents
- SyncOrchestrator: the per-source state machine
- SubscriptionIndex / NotificationDispatcher: events -> notification intents
- Delivery backends: hand intents to the outside world
- on_internal_booking: new_booking events from internal reservations
"""

from .field_extractor import FieldExtractor
from .change_detector import ChangeDetector, carry_forward, quantize_price
from .subscription_index import SubscriptionIndex, is_eligible, make_dedup_key
from .delivery import BaseDeliveryBackend, LoggingDeliveryBackend, get_delivery_backend
from .dispatcher import NotificationDispatcher
from .sync_orchestrator import SyncOrchestrator, trigger_manual_sync, validate_values
from .booking import on_internal_booking

__all__ = [
    "FieldExtractor",
    "ChangeDetector",
    "carry_forward",
    "quantize_price",
    "SubscriptionIndex",
    "is_eligible",
    "make_dedup_key",
    "BaseDeliveryBackend",
    "LoggingDeliveryBackend",
    "get_delivery_backend",
    "NotificationDispatcher",
    "SyncOrchestrator",
    "trigger_manual_sync",
    "validate_values",
    "on_internal_booking",
]
