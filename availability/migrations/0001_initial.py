"""
Migration: Initial schema for the availability sync engine.

Creates agencies, circuits, departures, external sources, snapshots,
history, watchlist entries, sync runs, sync errors and the notification log.
"""

import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


DEPARTURE_STATUS_CHOICES = [
    ("open", "Open"),
    ("closed", "Closed"),
    ("full", "Full"),
    ("cancelled", "Cancelled"),
]

CHANGE_KIND_CHOICES = [
    ("availability_decreased", "Availability Decreased"),
    ("availability_increased", "Availability Increased"),
    ("became_full", "Became Full"),
    ("became_available", "Became Available"),
    ("capacity_changed", "Capacity Changed"),
    ("status_changed", "Status Changed"),
    ("price_changed", "Price Changed"),
    ("new_booking", "New Booking"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Agency",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "agencies",
                "ordering": ["name"],
                "verbose_name_plural": "Agencies",
            },
        ),
        migrations.CreateModel(
            name="Circuit",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=255)),
                ("slug", models.SlugField(max_length=255, unique=True)),
                ("base_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("currency", models.CharField(default="EUR", max_length=3)),
                ("duration_days", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "circuits",
                "ordering": ["title"],
            },
        ),
        migrations.CreateModel(
            name="Departure",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("start_date", models.DateField()),
                (
                    "total_seats",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("booked_seats", models.PositiveIntegerField(default=0)),
                (
                    "price_override",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Falls back to the circuit base price when empty",
                        max_digits=10,
                        null=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(choices=DEPARTURE_STATUS_CHOICES, default="open", max_length=20),
                ),
                ("last_synced_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "circuit",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="departures",
                        to="availability.circuit",
                    ),
                ),
            ],
            options={
                "db_table": "departures",
                "ordering": ["start_date"],
                "indexes": [
                    models.Index(fields=["circuit", "start_date"], name="departures_circuit_2b8f1e_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("booked_seats__lte", models.F("total_seats"))),
                        name="departure_booked_lte_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_seats__gte", 1)),
                        name="departure_total_seats_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ExternalSource",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("source_url", models.URLField(max_length=2000)),
                (
                    "source_kind",
                    models.CharField(
                        choices=[
                            ("web_scraping", "Web Scraping"),
                            ("api", "JSON API"),
                            ("manual", "Manual"),
                        ],
                        default="web_scraping",
                        max_length=20,
                    ),
                ),
                (
                    "sync_frequency",
                    models.CharField(
                        choices=[
                            ("hourly", "Hourly"),
                            ("daily", "Daily"),
                            ("weekly", "Weekly"),
                            ("manual", "Manual"),
                        ],
                        default="daily",
                        max_length=20,
                    ),
                ),
                (
                    "extraction_rules",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text=(
                            "Field name -> locator. Keys: available_seats, total_seats, "
                            "next_departure_date, status, price"
                        ),
                    ),
                ),
                ("custom_headers", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(default=False)),
                ("last_sync_at", models.DateTimeField(blank=True, null=True)),
                (
                    "last_sync_status",
                    models.CharField(
                        blank=True,
                        choices=[("success", "Success"), ("error", "Error")],
                        max_length=20,
                    ),
                ),
                ("last_sync_error", models.TextField(blank=True)),
                ("consecutive_failures", models.PositiveIntegerField(default=0)),
                ("next_sync_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "circuit",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="external_source",
                        to="availability.circuit",
                    ),
                ),
                (
                    "departure",
                    models.ForeignKey(
                        blank=True,
                        help_text="Departure to sync; resolved from the fetched date when empty",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="availability.departure",
                    ),
                ),
            ],
            options={
                "db_table": "external_sources",
                "ordering": ["circuit__title"],
                "indexes": [
                    models.Index(fields=["is_active", "next_sync_at"], name="external_so_is_acti_5c1d0a_idx"),
                    models.Index(fields=["sync_frequency"], name="external_so_sync_fr_9e2b47_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AvailabilitySnapshot",
            fields=[
                (
                    "departure",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="snapshot",
                        serialize=False,
                        to="availability.departure",
                    ),
                ),
                ("available_seats", models.IntegerField(blank=True, null=True)),
                ("total_seats", models.IntegerField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(blank=True, choices=DEPARTURE_STATUS_CHOICES, max_length=20),
                ),
                ("price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("captured_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "source",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="snapshots",
                        to="availability.externalsource",
                    ),
                ),
            ],
            options={
                "db_table": "availability_snapshots",
            },
        ),
        migrations.CreateModel(
            name="AvailabilityHistory",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                (
                    "origin",
                    models.CharField(
                        choices=[("sync", "External Sync"), ("booking", "Internal Booking")],
                        max_length=20,
                    ),
                ),
                ("available_seats", models.IntegerField(blank=True, null=True)),
                ("booked_seats", models.IntegerField(blank=True, null=True)),
                ("total_seats", models.IntegerField(blank=True, null=True)),
                ("status", models.CharField(blank=True, max_length=20)),
                ("price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("synced_from_url", models.URLField(blank=True, max_length=2000)),
                ("recorded_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "departure",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="availability_history",
                        to="availability.departure",
                    ),
                ),
            ],
            options={
                "db_table": "availability_history",
                "ordering": ["-recorded_at"],
                "verbose_name_plural": "Availability history",
                "indexes": [
                    models.Index(fields=["departure", "recorded_at"], name="availabilit_departu_7a3c2e_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WatchlistSubscription",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("notify_on_booking", models.BooleanField(default=True)),
                ("notify_on_availability_change", models.BooleanField(default=True)),
                ("notify_on_price_change", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "agency",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="watchlist",
                        to="availability.agency",
                    ),
                ),
                (
                    "circuit",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="watchers",
                        to="availability.circuit",
                    ),
                ),
            ],
            options={
                "db_table": "gir_watchlist",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("agency", "circuit"), name="unique_watchlist_agency_circuit"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncRun",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("is_manual", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                        ],
                        default="running",
                        max_length=20,
                    ),
                ),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("idle", "Idle"),
                            ("fetching", "Fetching"),
                            ("extracting", "Extracting"),
                            ("detecting", "Detecting"),
                            ("persisted", "Persisted"),
                            ("error", "Error"),
                        ],
                        default="idle",
                        max_length=20,
                    ),
                ),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("events_detected", models.IntegerField(default=0)),
                ("notifications_dispatched", models.IntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
                (
                    "departure",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="availability.departure",
                    ),
                ),
                (
                    "source",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="runs",
                        to="availability.externalsource",
                    ),
                ),
            ],
            options={
                "db_table": "sync_runs",
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["source", "started_at"], name="sync_runs_source__4f8a61_idx"),
                    models.Index(fields=["status", "started_at"], name="sync_runs_status_b27d93_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncError",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("url", models.URLField(max_length=2000)),
                (
                    "error_type",
                    models.CharField(
                        choices=[
                            ("connection", "Connection Error"),
                            ("timeout", "Timeout"),
                            ("http_status", "Non-2xx Response"),
                            ("parse", "Parse Error"),
                            ("validation", "Validation Error"),
                            ("unknown", "Unknown Error"),
                        ],
                        max_length=20,
                    ),
                ),
                ("message", models.TextField()),
                ("response_status", models.IntegerField(blank=True, null=True)),
                ("raw_excerpt", models.TextField(blank=True, help_text="Truncated raw content")),
                ("stack_trace", models.TextField(blank=True)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("resolved", models.BooleanField(default=False)),
                (
                    "run",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="errors",
                        to="availability.syncrun",
                    ),
                ),
                (
                    "source",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="errors",
                        to="availability.externalsource",
                    ),
                ),
            ],
            options={
                "db_table": "sync_errors",
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["source", "timestamp"], name="sync_errors_source__1e6b3c_idx"),
                    models.Index(fields=["error_type", "timestamp"], name="sync_errors_error_t_8d4f27_idx"),
                    models.Index(fields=["resolved"], name="sync_errors_resolve_3a9e05_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("dedup_key", models.CharField(db_index=True, max_length=64)),
                ("event_kind", models.CharField(choices=CHANGE_KIND_CHOICES, max_length=30)),
                ("old_value", models.CharField(blank=True, max_length=100)),
                ("new_value", models.CharField(blank=True, max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("sent", "Sent"), ("failed", "Failed")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("error_message", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "agency",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to="availability.agency",
                    ),
                ),
                (
                    "departure",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to="availability.departure",
                    ),
                ),
            ],
            options={
                "db_table": "notification_log",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["dedup_key", "created_at"], name="notificatio_dedup_k_6c2a19_idx"),
                    models.Index(fields=["agency", "created_at"], name="notificatio_agency__f41e88_idx"),
                ],
            },
        ),
    ]
