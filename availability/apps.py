"""
Availability application configuration.
"""

from django.apps import AppConfig


class AvailabilityConfig(AppConfig):
    """Configuration for the availability Django application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "availability"
    verbose_name = "GIR Availability Sync"
