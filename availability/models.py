"""
Django models for the GIR Availability Sync service.

Models: Agency, Circuit, Departure, ExternalSource, AvailabilitySnapshot,
        AvailabilityHistory, WatchlistSubscription, SyncRun, SyncError,
        NotificationLog

Circuits, departures, agencies and watchlist entries are edited elsewhere;
this app reads them and writes only the sync outcome fields, the snapshot,
and the seat/status columns of a departure.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class DepartureStatus(models.TextChoices):
    """Booking status of a departure."""

    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"
    FULL = "full", "Full"
    CANCELLED = "cancelled", "Cancelled"


class SourceKind(models.TextChoices):
    """How availability is obtained from an external source."""

    WEB_SCRAPING = "web_scraping", "Web Scraping"
    API = "api", "JSON API"
    MANUAL = "manual", "Manual"


class SyncFrequency(models.TextChoices):
    """
    How often a source is synchronized.

    - manual: never triggered by the scheduler, only on operator request
    """

    HOURLY = "hourly", "Hourly"
    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"
    MANUAL = "manual", "Manual"


class SyncStatus(models.TextChoices):
    """Outcome of the last sync run of a source."""

    SUCCESS = "success", "Success"
    ERROR = "error", "Error"


class SyncState(models.TextChoices):
    """States of a single sync run."""

    IDLE = "idle", "Idle"
    FETCHING = "fetching", "Fetching"
    EXTRACTING = "extracting", "Extracting"
    DETECTING = "detecting", "Detecting"
    PERSISTED = "persisted", "Persisted"
    ERROR = "error", "Error"


class SyncRunStatus(models.TextChoices):
    """Status of a sync run record."""

    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


class ErrorType(models.TextChoices):
    """Types of sync errors."""

    CONNECTION = "connection", "Connection Error"
    TIMEOUT = "timeout", "Timeout"
    HTTP_STATUS = "http_status", "Non-2xx Response"
    PARSE = "parse", "Parse Error"
    VALIDATION = "validation", "Validation Error"
    UNKNOWN = "unknown", "Unknown Error"


class HistoryOrigin(models.TextChoices):
    """What produced an availability history entry."""

    SYNC = "sync", "External Sync"
    BOOKING = "booking", "Internal Booking"


class ChangeKind(models.TextChoices):
    """Kinds of change events raised by detection or bookings."""

    AVAILABILITY_DECREASED = "availability_decreased", "Availability Decreased"
    AVAILABILITY_INCREASED = "availability_increased", "Availability Increased"
    BECAME_FULL = "became_full", "Became Full"
    BECAME_AVAILABLE = "became_available", "Became Available"
    CAPACITY_CHANGED = "capacity_changed", "Capacity Changed"
    STATUS_CHANGED = "status_changed", "Status Changed"
    PRICE_CHANGED = "price_changed", "Price Changed"
    NEW_BOOKING = "new_booking", "New Booking"


class DeliveryStatus(models.TextChoices):
    """Outcome of handing a notification to the delivery backend."""

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


class Agency(models.Model):
    """A travel agency that can watch circuits."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "agencies"
        ordering = ["name"]
        verbose_name_plural = "Agencies"

    def __str__(self):
        return self.name


class Circuit(models.Model):
    """A sellable guaranteed-departure product."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="EUR")
    duration_days = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "circuits"
        ordering = ["title"]

    def __str__(self):
        return self.title


class Departure(models.Model):
    """
    One scheduled occurrence of a Circuit.

    booked_seats never exceeds total_seats. The status is usually driven by
    the seat counts but an operator may set it independently.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    circuit = models.ForeignKey(
        Circuit, on_delete=models.CASCADE, related_name="departures"
    )
    start_date = models.DateField()
    total_seats = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    booked_seats = models.PositiveIntegerField(default=0)
    price_override = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        help_text="Falls back to the circuit base price when empty",
    )
    status = models.CharField(
        max_length=20, choices=DepartureStatus.choices, default=DepartureStatus.OPEN
    )
    last_synced_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(default=timezone.now)

    def save(self, *args, **kwargs):
        self.updated_at = timezone.now()
        super().save(*args, **kwargs)

    class Meta:
        db_table = "departures"
        ordering = ["start_date"]
        constraints = [
            models.CheckConstraint(
                condition=Q(booked_seats__lte=F("total_seats")),
                name="departure_booked_lte_total",
            ),
            models.CheckConstraint(
                condition=Q(total_seats__gte=1),
                name="departure_total_seats_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["circuit", "start_date"], name="departures_circuit_2b8f1e_idx"),
        ]

    def __str__(self):
        return f"{self.circuit.title} - {self.start_date} ({self.status})"

    @property
    def available_seats(self) -> int:
        return self.total_seats - self.booked_seats

    @property
    def effective_price(self) -> Decimal:
        if self.price_override is not None:
            return self.price_override
        return self.circuit.base_price


class ExternalSource(models.Model):
    """
    Sync configuration attached to a Circuit.

    The outcome fields (last_sync_*, consecutive_failures, next_sync_at) are
    written only by the sync orchestrator.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    circuit = models.OneToOneField(
        Circuit, on_delete=models.CASCADE, related_name="external_source"
    )
    departure = models.ForeignKey(
        Departure,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Departure to sync; resolved from the fetched date when empty",
    )
    source_url = models.URLField(max_length=2000)
    source_kind = models.CharField(
        max_length=20, choices=SourceKind.choices, default=SourceKind.WEB_SCRAPING
    )
    sync_frequency = models.CharField(
        max_length=20, choices=SyncFrequency.choices, default=SyncFrequency.DAILY
    )
    extraction_rules = models.JSONField(
        default=dict,
        blank=True,
        help_text=(
            "Field name -> locator. Keys: available_seats, total_seats, "
            "next_departure_date, status, price"
        ),
    )
    custom_headers = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=False)

    # Status Tracking
    last_sync_at = models.DateTimeField(null=True, blank=True)
    last_sync_status = models.CharField(
        max_length=20, choices=SyncStatus.choices, blank=True
    )
    last_sync_error = models.TextField(blank=True)
    consecutive_failures = models.PositiveIntegerField(default=0)
    next_sync_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    def save(self, *args, **kwargs):
        self.updated_at = timezone.now()
        super().save(*args, **kwargs)

    class Meta:
        db_table = "external_sources"
        ordering = ["circuit__title"]
        indexes = [
            models.Index(fields=["is_active", "next_sync_at"], name="external_so_is_acti_5c1d0a_idx"),
            models.Index(fields=["sync_frequency"], name="external_so_sync_fr_9e2b47_idx"),
        ]

    def __str__(self):
        return f"{self.circuit.title} <- {self.source_url} ({self.source_kind})"

    @property
    def is_scheduled(self) -> bool:
        """Whether the scheduler may trigger this source on its own."""
        return self.is_active and self.sync_frequency != SyncFrequency.MANUAL

    def is_due_for_sync(self, now=None) -> bool:
        """Check if source is due for an automatic sync."""
        if not self.is_scheduled:
            return False
        if self.next_sync_at is None:
            return True
        return (now or timezone.now()) >= self.next_sync_at


class AvailabilitySnapshot(models.Model):
    """
    Last-known availability of a departure, the baseline for change detection.

    Replaced as a whole on every successful sync. Any field may be unknown
    until a fetch has reported it once.
    """

    departure = models.OneToOneField(
        Departure, on_delete=models.CASCADE, related_name="snapshot", primary_key=True
    )
    source = models.ForeignKey(
        ExternalSource, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="snapshots",
    )
    available_seats = models.IntegerField(null=True, blank=True)
    total_seats = models.IntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=20, choices=DepartureStatus.choices, blank=True
    )
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    captured_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "availability_snapshots"

    def __str__(self):
        return (
            f"Snapshot {self.departure_id}: {self.available_seats}/{self.total_seats} "
            f"{self.status or '-'} @ {self.captured_at}"
        )


class AvailabilityHistory(models.Model):
    """Append-only log of availability observations for a departure."""

    id = models.BigAutoField(primary_key=True)
    departure = models.ForeignKey(
        Departure, on_delete=models.CASCADE, related_name="availability_history"
    )
    origin = models.CharField(max_length=20, choices=HistoryOrigin.choices)
    available_seats = models.IntegerField(null=True, blank=True)
    booked_seats = models.IntegerField(null=True, blank=True)
    total_seats = models.IntegerField(null=True, blank=True)
    status = models.CharField(max_length=20, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    synced_from_url = models.URLField(max_length=2000, blank=True)
    recorded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "availability_history"
        ordering = ["-recorded_at"]
        indexes = [
            models.Index(fields=["departure", "recorded_at"], name="availabilit_departu_7a3c2e_idx"),
        ]
        verbose_name_plural = "Availability history"

    def __str__(self):
        return f"{self.departure_id} {self.origin}: {self.available_seats} ({self.recorded_at})"


class WatchlistSubscription(models.Model):
    """An agency's interest in one circuit, with per-kind notification flags."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    agency = models.ForeignKey(
        Agency, on_delete=models.CASCADE, related_name="watchlist"
    )
    circuit = models.ForeignKey(
        Circuit, on_delete=models.CASCADE, related_name="watchers"
    )
    notify_on_booking = models.BooleanField(default=True)
    notify_on_availability_change = models.BooleanField(default=True)
    notify_on_price_change = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "gir_watchlist"
        constraints = [
            models.UniqueConstraint(
                fields=["agency", "circuit"], name="unique_watchlist_agency_circuit"
            ),
        ]

    def __str__(self):
        return f"{self.agency} watches {self.circuit}"


class SyncRun(models.Model):
    """Tracks one execution of the sync state machine for a source."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.ForeignKey(
        ExternalSource, on_delete=models.CASCADE, related_name="runs"
    )
    departure = models.ForeignKey(
        Departure, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    is_manual = models.BooleanField(default=False)
    status = models.CharField(
        max_length=20, choices=SyncRunStatus.choices, default=SyncRunStatus.RUNNING
    )
    state = models.CharField(
        max_length=20, choices=SyncState.choices, default=SyncState.IDLE
    )
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    events_detected = models.IntegerField(default=0)
    notifications_dispatched = models.IntegerField(default=0)
    error_message = models.TextField(blank=True)

    class Meta:
        db_table = "sync_runs"
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["source", "started_at"], name="sync_runs_source__4f8a61_idx"),
            models.Index(fields=["status", "started_at"], name="sync_runs_status_b27d93_idx"),
        ]

    def __str__(self):
        return f"Run {self.id} - {self.source_id} ({self.status})"

    @property
    def duration_seconds(self):
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def advance(self, state: str):
        """Move the run to the next state."""
        self.state = state
        self.save(update_fields=["state"])

    def complete(self, success: bool = True, error_message: str = ""):
        """Mark run as completed or failed."""
        self.status = SyncRunStatus.COMPLETED if success else SyncRunStatus.FAILED
        self.state = SyncState.IDLE if success else SyncState.ERROR
        self.completed_at = timezone.now()
        self.error_message = error_message or ""
        self.save(
            update_fields=[
                "status", "state", "completed_at", "error_message",
                "events_detected", "notifications_dispatched", "departure",
            ]
        )


class SyncError(models.Model):
    """Persistent record of a failed sync run, for operator diagnosis."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    source = models.ForeignKey(
        ExternalSource, on_delete=models.CASCADE, related_name="errors"
    )
    run = models.ForeignKey(
        SyncRun, on_delete=models.SET_NULL, null=True, blank=True, related_name="errors"
    )
    url = models.URLField(max_length=2000)
    error_type = models.CharField(max_length=20, choices=ErrorType.choices)
    message = models.TextField()
    response_status = models.IntegerField(null=True, blank=True)
    raw_excerpt = models.TextField(blank=True, help_text="Truncated raw content")
    stack_trace = models.TextField(blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    resolved = models.BooleanField(default=False)

    class Meta:
        db_table = "sync_errors"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["source", "timestamp"], name="sync_errors_source__1e6b3c_idx"),
            models.Index(fields=["error_type", "timestamp"], name="sync_errors_error_t_8d4f27_idx"),
            models.Index(fields=["resolved"], name="sync_errors_resolve_3a9e05_idx"),
        ]

    def __str__(self):
        return f"{self.error_type}: {self.message[:50]}... ({self.timestamp})"


class NotificationLogQuerySet(models.QuerySet):
    def within_window(self, hours: int, now=None):
        now = now or timezone.now()
        return self.filter(created_at__gte=now - timedelta(hours=hours))


class NotificationLog(models.Model):
    """
    Ledger of notification intents handed to the delivery backend.

    A row blocks any other intent with the same dedup_key for the length of
    the suppression window, whatever its delivery status.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dedup_key = models.CharField(max_length=64, db_index=True)
    agency = models.ForeignKey(
        Agency, on_delete=models.CASCADE, related_name="notifications"
    )
    departure = models.ForeignKey(
        Departure, on_delete=models.CASCADE, related_name="notifications"
    )
    event_kind = models.CharField(max_length=30, choices=ChangeKind.choices)
    old_value = models.CharField(max_length=100, blank=True)
    new_value = models.CharField(max_length=100, blank=True)
    status = models.CharField(
        max_length=20, choices=DeliveryStatus.choices, default=DeliveryStatus.PENDING
    )
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    delivered_at = models.DateTimeField(null=True, blank=True)

    objects = NotificationLogQuerySet.as_manager()

    class Meta:
        db_table = "notification_log"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["dedup_key", "created_at"], name="notificatio_dedup_k_6c2a19_idx"),
            models.Index(fields=["agency", "created_at"], name="notificatio_agency__f41e88_idx"),
        ]

    def __str__(self):
        return f"{self.event_kind} -> {self.agency_id} ({self.status})"
