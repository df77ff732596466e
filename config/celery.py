"""
Celery configuration for the GIR Availability Sync service.

This module configures Celery for the periodic source check and the
per-source sync runs.
"""

import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("availability_sync")

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_queues = {
    "sync": {
        "exchange": "sync",
        "routing_key": "sync",
    },
    "notifications": {
        "exchange": "notifications",
        "routing_key": "notifications",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "availability.tasks.sync_source": {"queue": "sync"},
    "availability.tasks.trigger_manual_sync": {"queue": "sync"},
    "availability.tasks.record_internal_booking": {"queue": "notifications"},
    "availability.tasks.check_due_sources": {"queue": "default"},
    "availability.tasks.cleanup_notification_logs": {"queue": "default"},
}

app.conf.beat_schedule = {
    "check-due-sources-every-5-minutes": {
        "task": "availability.tasks.check_due_sources",
        "schedule": crontab(minute="*/5"),
    },
    "cleanup-notification-logs-daily": {
        "task": "availability.tasks.cleanup_notification_logs",
        "schedule": crontab(hour=3, minute=30),
    },
}
