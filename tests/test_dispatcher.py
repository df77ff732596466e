"""
Tests for the Subscription Index and Notification Dispatcher.

Covers preference gating, dedup within the suppression window, inactive
agencies, and the delivery outcome recorded in NotificationLog.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from availability.models import NotificationLog, WatchlistSubscription
from availability.services.dispatcher import NotificationDispatcher
from availability.services.subscription_index import is_eligible, make_dedup_key
from availability.types import ChangeEvent, DeliveryResult


def event(departure, kind, old=6, new=4):
    return ChangeEvent(
        kind=kind,
        departure_id=departure.id,
        old_value=old,
        new_value=new,
        timestamp=timezone.now(),
    )


@pytest.fixture
def dispatcher(recording_backend):
    return NotificationDispatcher(backend=recording_backend, suppression_hours=24)


class TestPreferenceGating:
    """Which subscription flags allow which events."""

    @pytest.mark.parametrize("kind,flag", [
        ("availability_decreased", "notify_on_availability_change"),
        ("availability_increased", "notify_on_availability_change"),
        ("became_full", "notify_on_availability_change"),
        ("became_available", "notify_on_availability_change"),
        ("capacity_changed", "notify_on_availability_change"),
        ("status_changed", "notify_on_availability_change"),
        ("price_changed", "notify_on_price_change"),
        ("new_booking", "notify_on_booking"),
    ])
    def test_flag_for_kind(self, kind, flag):
        """Each kind needs exactly its flag."""
        flags = {
            "notify_on_booking": False,
            "notify_on_availability_change": False,
            "notify_on_price_change": False,
        }
        subscription = WatchlistSubscription(**flags)
        assert is_eligible(subscription, kind) is False

        setattr(subscription, flag, True)
        assert is_eligible(subscription, kind) is True

    @pytest.mark.django_db
    def test_price_opt_out_never_notified(self, dispatcher, recording_backend, departure, agency, other_agency, circuit):
        """notify_on_price_change=False blocks price events even when others get them."""
        WatchlistSubscription.objects.create(agency=agency, circuit=circuit, notify_on_price_change=False)
        WatchlistSubscription.objects.create(agency=other_agency, circuit=circuit)

        dispatched = dispatcher.dispatch(
            [event(departure, "price_changed", Decimal("1890.00"), Decimal("1790.00"))],
            circuit.id,
        )

        assert [intent.agency_id for intent in dispatched] == [other_agency.id]
        assert len(recording_backend.delivered) == 1

    @pytest.mark.django_db
    def test_booking_only_subscriber_ignores_availability(self, dispatcher, departure, agency, circuit):
        """A booking-only watcher receives nothing for availability events."""
        WatchlistSubscription.objects.create(
            agency=agency,
            circuit=circuit,
            notify_on_availability_change=False,
            notify_on_price_change=False,
        )

        dispatched = dispatcher.dispatch(
            [event(departure, "availability_decreased"), event(departure, "became_full", 4, 0)],
            circuit.id,
        )

        assert dispatched == []

    @pytest.mark.django_db
    def test_inactive_agency_not_notified(self, dispatcher, departure, agency, subscription, circuit):
        """Agencies switched off are skipped."""
        agency.is_active = False
        agency.save()

        assert dispatcher.dispatch([event(departure, "availability_decreased")], circuit.id) == []

    @pytest.mark.django_db
    def test_excluded_agency_skipped(self, dispatcher, departure, agency, other_agency, circuit):
        """exclude_agency_id removes one agency from the fan-out."""
        WatchlistSubscription.objects.create(agency=agency, circuit=circuit)
        WatchlistSubscription.objects.create(agency=other_agency, circuit=circuit)

        dispatched = dispatcher.dispatch(
            [event(departure, "new_booking", 6, 4)], circuit.id, exclude_agency_id=agency.id
        )

        assert [intent.agency_id for intent in dispatched] == [other_agency.id]


@pytest.mark.django_db
class TestDeduplication:
    """At most one notification per dedup key within the window."""

    def test_identical_observation_dispatched_once(self, dispatcher, recording_backend, departure, subscription, circuit):
        """The same new value seen by two syncs in a row notifies once."""
        first = dispatcher.dispatch([event(departure, "availability_decreased", 6, 4)], circuit.id)
        second = dispatcher.dispatch([event(departure, "availability_decreased", 6, 4)], circuit.id)

        assert len(first) == 1
        assert second == []
        assert len(recording_backend.delivered) == 1
        assert NotificationLog.objects.count() == 1

    def test_different_new_value_not_suppressed(self, dispatcher, departure, subscription, circuit):
        """A further change has a new dedup key."""
        dispatcher.dispatch([event(departure, "availability_decreased", 6, 4)], circuit.id)
        dispatched = dispatcher.dispatch([event(departure, "availability_decreased", 4, 3)], circuit.id)

        assert len(dispatched) == 1

    def test_window_expiry_allows_resend(self, dispatcher, departure, subscription, circuit):
        """Log rows older than the window no longer suppress."""
        dispatcher.dispatch([event(departure, "availability_decreased", 6, 4)], circuit.id)
        NotificationLog.objects.update(created_at=timezone.now() - timedelta(hours=25))

        dispatched = dispatcher.dispatch([event(departure, "availability_decreased", 6, 4)], circuit.id)

        assert len(dispatched) == 1

    def test_failed_delivery_still_suppresses(self, dispatcher, recording_backend, departure, subscription, circuit):
        """A failed send is logged and not re-triggered by the next detection."""
        recording_backend.result = DeliveryResult(sent=False, error="SMTP down")

        dispatcher.dispatch([event(departure, "became_full", 1, 0)], circuit.id)
        again = dispatcher.dispatch([event(departure, "became_full", 1, 0)], circuit.id)

        log = NotificationLog.objects.get()
        assert log.status == "failed"
        assert log.error_message == "SMTP down"
        assert again == []

    def test_backend_exception_recorded_as_failed(self, departure, subscription, circuit):
        """A raising backend marks the log row failed and does not propagate."""
        class BrokenBackend:
            def deliver(self, intent):
                raise RuntimeError("gateway exploded")

        dispatcher = NotificationDispatcher(backend=BrokenBackend())

        dispatched = dispatcher.dispatch([event(departure, "availability_decreased")], circuit.id)

        assert len(dispatched) == 1
        log = NotificationLog.objects.get()
        assert log.status == "failed"
        assert "gateway exploded" in log.error_message

    def test_sent_delivery_logged(self, dispatcher, departure, subscription, circuit, agency):
        """Successful deliveries are stored with their values."""
        dispatcher.dispatch([event(departure, "availability_decreased", 6, 4)], circuit.id)

        log = NotificationLog.objects.get()
        assert log.status == "sent"
        assert log.delivered_at is not None
        assert log.agency_id == agency.id
        assert (log.old_value, log.new_value) == ("6", "4")
        assert log.dedup_key == make_dedup_key(
            subscription.id, departure.id, "availability_decreased", 4
        )

    def test_no_events_no_lookup(self, dispatcher, circuit):
        """An empty batch dispatches nothing."""
        assert dispatcher.dispatch([], circuit.id) == []


class TestDedupKey:
    """Dedup key identity."""

    def test_key_depends_on_every_component(self):
        base = make_dedup_key("s", "d", "became_full", 0)

        assert base == make_dedup_key("s", "d", "became_full", 0)
        assert base != make_dedup_key("s2", "d", "became_full", 0)
        assert base != make_dedup_key("s", "d2", "became_full", 0)
        assert base != make_dedup_key("s", "d", "availability_decreased", 0)
        assert base != make_dedup_key("s", "d", "became_full", 1)
        assert len(base) == 64
