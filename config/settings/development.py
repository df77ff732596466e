"""
Development settings for the GIR Availability Sync service.

SQLite and a database cache, so the scheduler and the sync locks work
without Redis. Celery still needs a broker; run_sync_scheduler does not.
"""

import os
from .base import *

DEBUG = True
ALLOWED_HOSTS = ["localhost", "127.0.0.1"]
INTERNAL_IPS = ["127.0.0.1"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Needs `python manage.py createcachetable` once
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "availability_cache",
    }
}

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

LOGGING["loggers"]["django"]["level"] = "INFO"
LOGGING["loggers"]["availability"]["level"] = "DEBUG"

AUTH_PASSWORD_VALIDATORS = []

# Partner pages can be slow; syncs run back to back
AVAILABILITY_REQUEST_TIMEOUT = 60
AVAILABILITY_SYNC_JITTER_SECONDS = 0
AVAILABILITY_SCHEDULER_POLL_SECONDS = 5
AVAILABILITY_FAILURE_THRESHOLD = 3
