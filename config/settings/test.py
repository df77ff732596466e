"""
Test settings for the GIR Availability Sync service.

Everything runs in process: in-memory SQLite, a local-memory cache for the
sync locks, eager Celery, and no Sentry.
"""

from .base import *

DEBUG = False
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Sync locks and queued markers need an atomic cache.add
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "availability-tests",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["availability"]["level"] = "WARNING"

AUTH_PASSWORD_VALIDATORS = []
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

SENTRY_DSN = ""

# Availability sync: short timeouts, no jitter, small pool, log-only delivery
AVAILABILITY_REQUEST_TIMEOUT = 5
AVAILABILITY_SYNC_JITTER_SECONDS = 0
AVAILABILITY_SYNC_POOL_SIZE = 2
AVAILABILITY_SYNC_LOCK_TIMEOUT = 60
AVAILABILITY_SCHEDULER_POLL_SECONDS = 0.1
AVAILABILITY_NOTIFICATION_SUPPRESSION_HOURS = 24
AVAILABILITY_DELIVERY_BACKEND = "availability.services.delivery.LoggingDeliveryBackend"
