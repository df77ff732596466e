"""
Tests for the Field Extractor.

Covers CSS selector extraction from partner pages, dotted-path extraction
from JSON payloads, default locators, and the value parsers.
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from availability.exceptions import ExtractionError
from availability.types import FetchedAvailability
from availability.services.field_extractor import (
    FieldExtractor,
    normalize_rules,
    parse_date,
    parse_int,
    parse_price,
    parse_status,
    resolve_path,
    DEFAULT_SELECTORS,
)

TODAY = date(2026, 3, 1)


@pytest.fixture
def extractor():
    return FieldExtractor()


class TestHtmlExtraction:
    """Extraction from HTML documents with CSS selectors."""

    def test_extracts_configured_fields(self, extractor):
        """Every configured selector yields its field."""
        html = """
        <div class="gir">
          <span class="seats">Plus que 4 places</span>
          <span class="capacity">16</span>
          <p class="state">Départ confirmé - disponible</p>
          <span class="amount">1 890,00 €</span>
        </div>
        """
        rules = {
            "available_seats": ".seats",
            "total_seats": ".capacity",
            "status": ".state",
            "price": ".amount",
        }

        fetched = extractor.extract(html, "web_scraping", rules, today=TODAY)

        assert fetched.available_seats == 4
        assert fetched.total_seats == 16
        assert fetched.status == "open"
        assert fetched.price == Decimal("1890.00")

    def test_default_selectors_used_without_rules(self, extractor):
        """Sources without custom rules fall back to the default locators."""
        html = "<div><span class='places-restantes'>7</span><span class='prix'>990 €</span></div>"

        fetched = extractor.extract(html, "web_scraping", {}, today=TODAY)

        assert fetched.available_seats == 7
        assert fetched.price == Decimal("990")

    def test_unmatched_selector_yields_none(self, extractor):
        """A selector that matches nothing is not an error."""
        html = "<div><span class='places-available'>3</span></div>"

        fetched = extractor.extract(
            html, "web_scraping", {"total_seats": ".does-not-exist"}, today=TODAY
        )

        assert fetched.available_seats == 3
        assert fetched.total_seats is None

    def test_invalid_selector_treated_as_unmatched(self, extractor):
        """A malformed selector yields None exactly like a missing one."""
        html = "<div><span class='places-available'>3</span></div>"

        fetched = extractor.extract(
            html, "web_scraping", {"total_seats": "[[["}, today=TODAY
        )

        assert fetched.total_seats is None
        assert fetched.available_seats == 3

    def test_empty_rule_disables_field(self, extractor):
        """An explicitly empty rule turns the default locator off."""
        html = "<div><span class='places-available'>3</span></div>"

        fetched = extractor.extract(html, "web_scraping", {"available_seats": ""}, today=TODAY)

        assert fetched.available_seats is None

    def test_number_read_from_data_attribute(self, extractor):
        """A matched element without digits in its text falls back to data-* attributes."""
        html = "<div data-places='5'><i class='icon'></i></div>"

        fetched = extractor.extract(html, "web_scraping", {"available_seats": "[data-places]"}, today=TODAY)

        assert fetched.available_seats == 5

    def test_full_status_without_count_means_zero(self, extractor):
        """'Complet' with no seat count reports zero available seats."""
        html = "<div><span class='booking-status'>COMPLET</span></div>"

        fetched = extractor.extract(html, "web_scraping", {"available_seats": ""}, today=TODAY)

        assert fetched.status == "full"
        assert fetched.available_seats == 0

    def test_next_departure_date_is_earliest_upcoming(self, extractor):
        """Past dates are ignored when picking the next departure."""
        html = """
        <ul>
          <li class="departure-date">15/01/2026</li>
          <li class="departure-date">12/04/2026</li>
          <li class="departure-date">2026-03-20</li>
        </ul>
        """

        fetched = extractor.extract(html, "web_scraping", {}, today=TODAY)

        assert fetched.next_departure_date == date(2026, 3, 20)

    def test_empty_document_raises(self, extractor):
        """Empty content cannot be parsed at all."""
        with pytest.raises(ExtractionError):
            extractor.extract("   ", "web_scraping", {}, today=TODAY)

    def test_plain_text_raises(self, extractor):
        """Content without a single tag is not an HTML document."""
        with pytest.raises(ExtractionError) as exc_info:
            extractor.extract("Service unavailable", "web_scraping", {}, today=TODAY)

        assert exc_info.value.raw_content == "Service unavailable"


class TestJsonExtraction:
    """Extraction from JSON payloads with dotted paths."""

    def test_extracts_nested_paths(self, extractor):
        """Dotted paths follow dicts and list indices."""
        payload = {
            "data": {
                "departures": [
                    {"seats": {"left": 4, "total": 16}, "state": "available", "price": "1890.00"},
                ]
            }
        }
        rules = {
            "available_seats": "data.departures.0.seats.left",
            "total_seats": "data.departures.0.seats.total",
            "status": "data.departures.0.state",
            "price": "data.departures.0.price",
        }

        fetched = extractor.extract(json.dumps(payload), "api", rules, today=TODAY)

        assert fetched.available_seats == 4
        assert fetched.total_seats == 16
        assert fetched.status == "open"
        assert fetched.price == Decimal("1890.00")

    def test_default_paths_are_top_level_keys(self, extractor):
        """Without rules the field names are read as top-level keys."""
        payload = {"available_seats": 2, "total_seats": 12, "next_departure_date": "2026-05-02"}

        fetched = extractor.extract(json.dumps(payload), "api", None, today=TODAY)

        assert fetched.available_seats == 2
        assert fetched.total_seats == 12
        assert fetched.next_departure_date == date(2026, 5, 2)
        assert fetched.price is None

    def test_date_list_picks_next_date(self, extractor):
        """A list of dates resolves to the earliest one not in the past."""
        payload = {"dates": ["2026-02-01", "2026-06-10", "2026-04-01"]}

        fetched = extractor.extract(
            json.dumps(payload), "api", {"next_departure_date": "dates"}, today=TODAY
        )

        assert fetched.next_departure_date == date(2026, 4, 1)

    def test_malformed_json_raises(self, extractor):
        """Unparsable JSON is an ExtractionError carrying the raw content."""
        with pytest.raises(ExtractionError) as exc_info:
            extractor.extract("{not json", "api", {}, today=TODAY)

        assert exc_info.value.raw_content == "{not json"

    def test_manual_kind_has_no_extractor(self, extractor):
        """Manual sources never go through extraction."""
        with pytest.raises(ExtractionError):
            extractor.extract("{}", "manual", {}, today=TODAY)


class TestRuleNormalization:
    """Operator rule names and defaults."""

    def test_documented_aliases_map_to_fields(self):
        """Hyphenated rule names map onto field names."""
        resolved = normalize_rules(
            {"places-available": ".a", "places-total": ".t", "booking-status": ".s"},
            DEFAULT_SELECTORS,
        )

        assert resolved["available_seats"] == ".a"
        assert resolved["total_seats"] == ".t"
        assert resolved["status"] == ".s"
        assert resolved["price"] == DEFAULT_SELECTORS["price"]

    def test_unknown_rule_ignored(self):
        """Rules for unknown fields are dropped."""
        resolved = normalize_rules({"colour": ".c"}, DEFAULT_SELECTORS)

        assert "colour" not in resolved


class TestParsers:
    """Value parsers used by both extraction modes."""

    @pytest.mark.parametrize("text,expected", [
        ("1 890,00 €", Decimal("1890.00")),
        ("€1,890.50", Decimal("1890.50")),
        ("1.890,00", Decimal("1890.00")),
        ("1,890", Decimal("1890")),
        ("990", Decimal("990")),
        ("from 45.5", Decimal("45.5")),
        ("sur demande", None),
    ])
    def test_parse_price(self, text, expected):
        """French and English price notations parse to the same Decimal."""
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text,expected", [
        ("Complet", "full"),
        ("Sold out", "full"),
        ("Départ annulé", "cancelled"),
        ("Indisponible", "closed"),
        ("Réservations fermées", "closed"),
        ("Disponible", "open"),
        ("Sur demande", None),
        ("", None),
    ])
    def test_parse_status(self, text, expected):
        """Status text maps onto departure statuses."""
        assert parse_status(text) == expected

    def test_parse_int_takes_first_number(self):
        """The first integer in the text wins."""
        assert parse_int("Plus que 3 places sur 16") == 3
        assert parse_int("aucune") is None
        assert parse_int(True) is None

    def test_parse_date_formats(self):
        """ISO and day-first formats are accepted."""
        assert parse_date("2026-04-12") == date(2026, 4, 12)
        assert parse_date("Départ le 12/04/2026") == date(2026, 4, 12)
        assert parse_date("12.04.2026") == date(2026, 4, 12)
        assert parse_date("bientôt") is None

    def test_resolve_path_missing_segment(self):
        """A path that does not resolve returns None."""
        payload = {"a": [{"b": 1}]}

        assert resolve_path(payload, "a.0.b") == 1
        assert resolve_path(payload, "a.1.b") is None
        assert resolve_path(payload, "a.x") is None
        assert resolve_path(payload, None) is None


class TestOperatorValues:
    """FetchedAvailability.from_dict on operator-entered values."""

    def test_status_text_mapped(self):
        assert FetchedAvailability.from_dict({"status": "Complet"}).status == "full"
        assert FetchedAvailability.from_dict({"status": "open"}).status == "open"

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            FetchedAvailability.from_dict({"status": "peut-être"})

    def test_missing_keys_are_unknown(self):
        values = FetchedAvailability.from_dict({"price": "990"})

        assert values.available_seats is None
        assert values.status is None
        assert values.price == Decimal("990")

    def test_whole_number_counts(self):
        values = FetchedAvailability.from_dict({"available_seats": "3", "total_seats": 16.0})

        assert values.available_seats == 3
        assert values.total_seats == 16

    @pytest.mark.parametrize("count", [3.7, True, "3.5", "many"])
    def test_non_integral_count_rejected(self, count):
        with pytest.raises(ValueError):
            FetchedAvailability.from_dict({"available_seats": count})

    def test_non_mapping_rejected(self):
        with pytest.raises(TypeError):
            FetchedAvailability.from_dict([1])
