"""
Field Extractor Service.

Turns raw fetched content into a FetchedAvailability using the per-source
extraction rules:

- web_scraping: each rule is a CSS selector applied to the HTML document
- api: each rule is a dotted path into the parsed JSON payload

A rule that is unset, invalid, or matches nothing yields None for its field.
Only content that cannot be parsed at all raises ExtractionError.
"""

import json
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from availability.exceptions import ExtractionError
from availability.models import DepartureStatus, SourceKind
from availability.types import FetchedAvailability

logger = logging.getLogger(__name__)


FIELD_NAMES = (
    "available_seats",
    "total_seats",
    "next_departure_date",
    "status",
    "price",
)

# Rule names accepted from operator configuration
RULE_ALIASES = {
    "places-available": "available_seats",
    "placesAvailable": "available_seats",
    "places-total": "total_seats",
    "placesTotal": "total_seats",
    "departure-dates": "next_departure_date",
    "departureDates": "next_departure_date",
    "booking-status": "status",
}

DEFAULT_SELECTORS = {
    "available_seats": ".places-available, .places-restantes, .availability, [data-places], .seats-available",
    "total_seats": ".places-total, .total-seats, [data-total-places]",
    "next_departure_date": ".departure-dates, .departure-date, .date-depart, [data-departure]",
    "status": ".booking-status, .status, .availability-status",
    "price": ".price, .prix, [data-price]",
}

DEFAULT_JSON_PATHS = {
    "available_seats": "available_seats",
    "total_seats": "total_seats",
    "next_departure_date": "next_departure_date",
    "status": "status",
    "price": "price",
}

# Checked in order, first match wins
STATUS_KEYWORDS = [
    (DepartureStatus.CANCELLED, ("annul", "cancel")),
    (DepartureStatus.FULL, ("complet", "full", "sold out", "épuisé", "epuise")),
    (DepartureStatus.CLOSED, ("indisponible", "non disponible", "unavailable", "fermé", "ferme", "closed", "clôturé")),
    (DepartureStatus.OPEN, ("disponible", "open", "available", "ouvert", "confirmé")),
]

DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y"]
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}|\d{1,2}[/.-]\d{1,2}[/.-]\d{4}")
INT_PATTERN = re.compile(r"-?\d+")
PRICE_PATTERN = re.compile(r"\d[\d\s.,]*")


def normalize_rules(rules: Optional[Mapping[str, Any]], defaults: Mapping[str, str]) -> Dict[str, Optional[str]]:
    """
    Resolve the effective locator for every field.

    Missing keys fall back to the default locator; a key set to an empty
    value disables the field.
    """
    resolved: Dict[str, Optional[str]] = dict(defaults)
    for key, locator in (rules or {}).items():
        field_name = RULE_ALIASES.get(key, key)
        if field_name not in FIELD_NAMES:
            logger.debug(f"Ignoring unknown extraction rule '{key}'")
            continue
        resolved[field_name] = str(locator).strip() if locator else None
    return resolved


def parse_int(value: Any) -> Optional[int]:
    """First integer found in a value, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = INT_PATTERN.search(str(value))
    return int(match.group()) if match else None


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a price written in either French or English notation.

    "1 299,00 €", "€1,299.00" and "1299" all give Decimal("1299.00").
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    match = PRICE_PATTERN.search(str(value))
    if not match:
        return None
    number = re.sub(r"\s", "", match.group()).rstrip(".,")

    if "," in number and "." in number:
        decimal_sep = "," if number.rfind(",") > number.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        number = number.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif "," in number:
        head, _, tail = number.rpartition(",")
        if len(tail) == 3 and head:
            number = number.replace(",", "")
        else:
            number = head.replace(",", "") + "." + tail
    elif number.count(".") == 1:
        head, _, tail = number.partition(".")
        if len(tail) == 3:
            number = head + tail
    else:
        number = number.replace(".", "")

    try:
        return Decimal(number)
    except InvalidOperation:
        return None


def parse_status(value: Any) -> Optional[str]:
    """Map free status text to a DepartureStatus, None when unrecognised."""
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    for status, keywords in STATUS_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return status.value
    return None


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    match = DATE_PATTERN.search(str(value))
    if not match:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(match.group(), fmt).date()
        except ValueError:
            continue
    return None


def fill_full_status(fetched: FetchedAvailability) -> FetchedAvailability:
    """A full booking status with no seat count means no seats left."""
    if fetched.status == DepartureStatus.FULL and fetched.available_seats is None:
        fetched.available_seats = 0
    return fetched


def pick_next_date(dates: List[date], today: date) -> Optional[date]:
    """Earliest date that is not in the past."""
    upcoming = sorted(d for d in dates if d >= today)
    return upcoming[0] if upcoming else None


class FieldExtractor:
    """
    Extracts availability fields from HTML documents and JSON payloads.

    Pure transform over in-memory content; never performs I/O.
    """

    def extract(
        self,
        content: str,
        source_kind: str,
        rules: Optional[Mapping[str, Any]] = None,
        today: Optional[date] = None,
    ) -> FetchedAvailability:
        """
        Extract a FetchedAvailability from raw content.

        Args:
            content: Raw HTML document or JSON text
            source_kind: SourceKind value of the source
            rules: Operator-supplied extraction rules (field -> locator)
            today: Reference date for choosing the next departure date

        Raises:
            ExtractionError: if the content cannot be parsed at all
        """
        today = today or date.today()

        if source_kind == SourceKind.API:
            fetched = self._extract_json(content, rules, today)
        elif source_kind == SourceKind.WEB_SCRAPING:
            fetched = self._extract_html(content, rules, today)
        else:
            raise ExtractionError(f"No extractor for source kind '{source_kind}'")

        return fill_full_status(fetched)

    # ------------------------------------------------------------------
    # HTML
    # ------------------------------------------------------------------

    def _extract_html(self, content: str, rules, today: date) -> FetchedAvailability:
        if not content or not content.strip():
            raise ExtractionError("Empty document", raw_content=content or "")

        try:
            soup = BeautifulSoup(content, "html.parser")
        except Exception as e:
            raise ExtractionError(f"Unparsable HTML: {e}", raw_content=content) from e

        if soup.find() is None:
            raise ExtractionError("Content is not an HTML document", raw_content=content)

        locators = normalize_rules(rules, DEFAULT_SELECTORS)

        date_texts = self._select_texts(soup, locators["next_departure_date"])
        dates = [d for d in (parse_date(text) for text in date_texts) if d]

        return FetchedAvailability(
            available_seats=parse_int(self._select_number_text(soup, locators["available_seats"])),
            total_seats=parse_int(self._select_number_text(soup, locators["total_seats"])),
            status=parse_status(" ".join(self._select_texts(soup, locators["status"])) or None),
            price=parse_price(self._select_number_text(soup, locators["price"])),
            next_departure_date=pick_next_date(dates, today),
        )

    def _select(self, soup: BeautifulSoup, selector: Optional[str]):
        if not selector:
            return []
        try:
            return soup.select(selector)
        except (SelectorSyntaxError, ValueError) as e:
            logger.debug(f"Selector '{selector}' could not be applied: {e}")
            return []

    def _select_texts(self, soup: BeautifulSoup, selector: Optional[str]) -> List[str]:
        texts = []
        for element in self._select(soup, selector):
            text = element.get_text(" ", strip=True)
            if text:
                texts.append(text)
        return texts

    def _select_number_text(self, soup: BeautifulSoup, selector: Optional[str]) -> Optional[str]:
        """Text of the first matched element carrying a digit, in its text or data-* attributes."""
        for element in self._select(soup, selector):
            text = element.get_text(" ", strip=True)
            if any(ch.isdigit() for ch in text):
                return text
            for name, value in element.attrs.items():
                if name.startswith("data-") and isinstance(value, str) and any(
                    ch.isdigit() for ch in value
                ):
                    return value
        return None

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def _extract_json(self, content: str, rules, today: date) -> FetchedAvailability:
        try:
            payload = json.loads(content)
        except (TypeError, ValueError) as e:
            raise ExtractionError(f"Unparsable JSON: {e}", raw_content=content or "") from e

        paths = normalize_rules(rules, DEFAULT_JSON_PATHS)

        raw_dates = resolve_path(payload, paths["next_departure_date"])
        if isinstance(raw_dates, list):
            dates = [d for d in (parse_date(item) for item in raw_dates) if d]
            next_date = pick_next_date(dates, today)
        else:
            next_date = parse_date(raw_dates)

        return FetchedAvailability(
            available_seats=parse_int(resolve_path(payload, paths["available_seats"])),
            total_seats=parse_int(resolve_path(payload, paths["total_seats"])),
            status=parse_status(resolve_path(payload, paths["status"])),
            price=parse_price(resolve_path(payload, paths["price"])),
            next_departure_date=next_date,
        )


def resolve_path(payload: Any, path: Optional[str]) -> Any:
    """
    Follow a dotted path ("data.departures.0.seats") into parsed JSON.

    Integer segments index into lists. Returns None as soon as a segment
    does not resolve.
    """
    if not path:
        return None
    current = payload
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current
