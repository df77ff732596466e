"""
Django admin configuration for the availability sync models.

Operator surfaces: sources with their last error and a "sync now" action,
sync runs, sync errors, the notification log, and availability history.
Run, error, log and history records are read-only.
"""

from django.contrib import admin
from django.utils.html import format_html

from availability.models import (
    Agency,
    AvailabilityHistory,
    AvailabilitySnapshot,
    Circuit,
    Departure,
    ExternalSource,
    NotificationLog,
    SyncError,
    SyncRun,
    WatchlistSubscription,
)
from availability.tasks import trigger_manual_sync


def _badge(color: str, text: str):
    return format_html(
        '<span style="background-color: {}; color: white; '
        'padding: 2px 8px; border-radius: 4px;">{}</span>',
        color, text,
    )


class ReadOnlyAdmin(admin.ModelAdmin):
    """Records written only by the sync engine."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Agency)
class AgencyAdmin(admin.ModelAdmin):
    list_display = ["name", "email", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "email"]


@admin.register(Circuit)
class CircuitAdmin(admin.ModelAdmin):
    list_display = ["title", "base_price", "currency", "duration_days"]
    search_fields = ["title", "slug"]
    prepopulated_fields = {"slug": ("title",)}


@admin.register(Departure)
class DepartureAdmin(admin.ModelAdmin):
    list_display = [
        "circuit",
        "start_date",
        "status",
        "booked_seats",
        "total_seats",
        "available_seats",
        "last_synced_at",
    ]
    list_filter = ["status"]
    search_fields = ["circuit__title"]
    readonly_fields = ["last_synced_at", "updated_at"]
    date_hierarchy = "start_date"


@admin.register(ExternalSource)
class ExternalSourceAdmin(admin.ModelAdmin):
    """
    Admin interface for external sources.

    Shows the outcome of the last sync and lets operators sync selected
    sources immediately.
    """

    list_display = [
        "circuit",
        "source_kind",
        "sync_frequency",
        "is_active_badge",
        "last_sync_at",
        "last_sync_status_badge",
        "consecutive_failures",
        "next_sync_at",
    ]
    list_filter = ["is_active", "source_kind", "sync_frequency", "last_sync_status"]
    search_fields = ["circuit__title", "source_url"]
    readonly_fields = [
        "id",
        "last_sync_at",
        "last_sync_status",
        "last_sync_error",
        "consecutive_failures",
        "next_sync_at",
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        ("Source", {
            "fields": ("id", "circuit", "departure", "source_url", "source_kind"),
        }),
        ("Sync Configuration", {
            "fields": ("is_active", "sync_frequency", "extraction_rules", "custom_headers"),
        }),
        ("Last Sync", {
            "fields": (
                "last_sync_at",
                "last_sync_status",
                "last_sync_error",
                "consecutive_failures",
                "next_sync_at",
            ),
        }),
        ("Timestamps", {
            "fields": ("created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )

    actions = ["sync_now", "enable_sources", "disable_sources"]

    def is_active_badge(self, obj):
        if obj.is_active:
            return _badge("#28a745", "Active")
        return _badge("#6c757d", "Inactive")
    is_active_badge.short_description = "Active"
    is_active_badge.admin_order_field = "is_active"

    def last_sync_status_badge(self, obj):
        if obj.last_sync_status == "success":
            return _badge("#28a745", "OK")
        if obj.last_sync_status == "error":
            return format_html(
                '<span title="{}" style="background-color: #dc3545; color: white; '
                'padding: 2px 8px; border-radius: 4px;">Failed</span>',
                obj.last_sync_error,
            )
        return _badge("#6c757d", "Never")
    last_sync_status_badge.short_description = "Last Sync"
    last_sync_status_badge.admin_order_field = "last_sync_status"

    @admin.action(description="Sync selected sources now")
    def sync_now(self, request, queryset):
        count = 0
        for source in queryset:
            trigger_manual_sync.apply_async(args=[str(source.id)])
            count += 1
        self.message_user(request, f"Triggered sync for {count} source(s).")

    @admin.action(description="Enable selected sources")
    def enable_sources(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f"Enabled {updated} source(s).")

    @admin.action(description="Disable selected sources")
    def disable_sources(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"Disabled {updated} source(s).")


@admin.register(AvailabilitySnapshot)
class AvailabilitySnapshotAdmin(ReadOnlyAdmin):
    list_display = ["departure", "available_seats", "total_seats", "status", "price", "captured_at"]
    list_filter = ["status"]


@admin.register(AvailabilityHistory)
class AvailabilityHistoryAdmin(ReadOnlyAdmin):
    list_display = [
        "departure",
        "origin",
        "available_seats",
        "booked_seats",
        "total_seats",
        "status",
        "price",
        "recorded_at",
    ]
    list_filter = ["origin", "status"]
    date_hierarchy = "recorded_at"


@admin.register(WatchlistSubscription)
class WatchlistSubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "agency",
        "circuit",
        "notify_on_booking",
        "notify_on_availability_change",
        "notify_on_price_change",
    ]
    list_filter = [
        "notify_on_booking",
        "notify_on_availability_change",
        "notify_on_price_change",
    ]
    search_fields = ["agency__name", "circuit__title"]


@admin.register(SyncRun)
class SyncRunAdmin(ReadOnlyAdmin):
    list_display = [
        "source",
        "status_badge",
        "state",
        "is_manual",
        "started_at",
        "duration_display",
        "events_detected",
        "notifications_dispatched",
    ]
    list_filter = ["status", "state", "is_manual"]
    date_hierarchy = "started_at"

    def status_badge(self, obj):
        colors = {
            "running": "#007bff",
            "completed": "#28a745",
            "failed": "#dc3545",
            "skipped": "#6c757d",
        }
        return _badge(colors.get(obj.status, "#6c757d"), obj.status.title())
    status_badge.short_description = "Status"
    status_badge.admin_order_field = "status"

    def duration_display(self, obj):
        seconds = obj.duration_seconds
        if seconds is None:
            return "-"
        return f"{seconds:.1f}s"
    duration_display.short_description = "Duration"


@admin.register(SyncError)
class SyncErrorAdmin(admin.ModelAdmin):
    list_display = ["source", "error_type", "short_message", "response_status", "timestamp", "resolved"]
    list_filter = ["error_type", "resolved"]
    search_fields = ["url", "message"]
    readonly_fields = [
        "source",
        "run",
        "url",
        "error_type",
        "message",
        "response_status",
        "raw_excerpt",
        "stack_trace",
        "timestamp",
    ]
    date_hierarchy = "timestamp"
    actions = ["mark_resolved"]

    def has_add_permission(self, request):
        return False

    def short_message(self, obj):
        return obj.message[:80]
    short_message.short_description = "Message"

    @admin.action(description="Mark selected errors as resolved")
    def mark_resolved(self, request, queryset):
        updated = queryset.update(resolved=True)
        self.message_user(request, f"Marked {updated} error(s) as resolved.")


@admin.register(NotificationLog)
class NotificationLogAdmin(ReadOnlyAdmin):
    list_display = ["agency", "departure", "event_kind", "old_value", "new_value", "status", "created_at"]
    list_filter = ["event_kind", "status"]
    search_fields = ["agency__name", "dedup_key"]
    date_hierarchy = "created_at"
