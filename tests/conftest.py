"""
Pytest configuration and fixtures for the availability sync test suite.
"""

from datetime import date, timedelta
from decimal import Decimal

import httpx
import pytest


@pytest.fixture(autouse=True)
def clear_cache():
    """Sync locks and queued markers live in the cache; start every test clean."""
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Create a test API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def admin_client_api(db, django_user_model):
    """API client logged in as a staff user."""
    from rest_framework.test import APIClient

    user = django_user_model.objects.create_user(
        username="operator", password="secret", is_staff=True
    )
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def circuit(db):
    """Create a test Circuit."""
    from availability.models import Circuit

    return Circuit.objects.create(
        title="Splendeurs du Rajasthan",
        slug="splendeurs-du-rajasthan",
        base_price=Decimal("1890.00"),
        duration_days=12,
    )


@pytest.fixture
def departure(circuit):
    """Departure with 16 seats, 10 booked (6 available)."""
    from availability.models import Departure

    return Departure.objects.create(
        circuit=circuit,
        start_date=date.today() + timedelta(days=60),
        total_seats=16,
        booked_seats=10,
        status="open",
    )


@pytest.fixture
def source(circuit, departure):
    """Active daily web scraping source pinned to the test departure."""
    from availability.models import ExternalSource

    return ExternalSource.objects.create(
        circuit=circuit,
        departure=departure,
        source_url="https://partner.example.com/circuits/rajasthan",
        source_kind="web_scraping",
        sync_frequency="daily",
        extraction_rules={
            "available_seats": ".places-available",
            "total_seats": ".places-total",
            "status": ".booking-status",
            "price": ".price",
        },
        is_active=True,
    )


@pytest.fixture
def baseline(departure, source):
    """Stored snapshot matching the test departure (6/16, open)."""
    from availability.models import AvailabilitySnapshot

    return AvailabilitySnapshot.objects.create(
        departure=departure,
        source=source,
        available_seats=6,
        total_seats=16,
        status="open",
        price=Decimal("1890.00"),
    )


@pytest.fixture
def agency(db):
    """Create an active Agency."""
    from availability.models import Agency

    return Agency.objects.create(name="Voyages Lumière", email="contact@lumiere.example")


@pytest.fixture
def other_agency(db):
    from availability.models import Agency

    return Agency.objects.create(name="Horizons Lointains", email="resa@horizons.example")


@pytest.fixture
def subscription(agency, circuit):
    """Watchlist entry with every notification flag on."""
    from availability.models import WatchlistSubscription

    return WatchlistSubscription.objects.create(agency=agency, circuit=circuit)


@pytest.fixture
def recording_backend():
    """Delivery backend that records the intents it receives."""
    from availability.services.delivery import BaseDeliveryBackend
    from availability.types import DeliveryResult

    class RecordingBackend(BaseDeliveryBackend):
        def __init__(self):
            self.delivered = []
            self.result = DeliveryResult(sent=True)

        def deliver(self, intent):
            self.delivered.append(intent)
            return self.result

    return RecordingBackend()


def availability_page(available=None, total=None, status=None, price=None) -> str:
    """Partner booking page with the fields the test source selects."""
    parts = ["<html><body><div class='departure'>"]
    if available is not None:
        parts.append(f"<span class='places-available'>{available} places restantes</span>")
    if total is not None:
        parts.append(f"<span class='places-total'>sur {total}</span>")
    if status is not None:
        parts.append(f"<span class='booking-status'>{status}</span>")
    if price is not None:
        parts.append(f"<span class='price'>{price}</span>")
    parts.append("</div></body></html>")
    return "".join(parts)


@pytest.fixture
def page_fetcher():
    """
    Build a fetcher factory serving canned responses through httpx.MockTransport.

    Usage: factory = page_fetcher(html) or page_fetcher(handler=callable)
    """
    from availability.fetchers import SourceFetcher

    def build(body: str = "", status_code: int = 200, handler=None):
        def default_handler(request):
            return httpx.Response(status_code, text=body)

        transport = httpx.MockTransport(handler or default_handler)
        return lambda: SourceFetcher(transport=transport)

    return build
