"""
Django base settings for the GIR Availability Sync service.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-availability-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "availability",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Password validation
# https://docs.djangoproject.com/en/4.2/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization

LANGUAGE_CODE = "fr-fr"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache Configuration
# Used for per-source sync locks. Configured in environment-specific settings.

CACHES = {
    # Override in environment-specific settings
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 10 * 60  # 10 minutes max for a single sync run


# Django REST Framework Configuration

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAdminUser",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "GIR Availability Sync API",
    "DESCRIPTION": "Availability synchronization and change notifications for guaranteed departures",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "availability": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2"))

import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )


# Availability Sync Configuration

# Hard timeout for a single source fetch (seconds)
AVAILABILITY_REQUEST_TIMEOUT = float(os.getenv("AVAILABILITY_REQUEST_TIMEOUT", "20"))

AVAILABILITY_USER_AGENT = os.getenv(
    "AVAILABILITY_USER_AGENT",
    "Mozilla/5.0 (compatible; GIRAvailabilityBot/1.0)",
)

# Maximum number of syncs in flight at once across all sources
AVAILABILITY_SYNC_POOL_SIZE = int(os.getenv("AVAILABILITY_SYNC_POOL_SIZE", "4"))

# Upper bound of the random delay added to each sync interval
AVAILABILITY_SYNC_JITTER_SECONDS = int(os.getenv("AVAILABILITY_SYNC_JITTER_SECONDS", "300"))

# Tick period of the standalone scheduler process
AVAILABILITY_SCHEDULER_POLL_SECONDS = float(os.getenv("AVAILABILITY_SCHEDULER_POLL_SECONDS", "30"))

# Expiry of the per-source run lock, must exceed the longest possible run
AVAILABILITY_SYNC_LOCK_TIMEOUT = int(os.getenv("AVAILABILITY_SYNC_LOCK_TIMEOUT", "600"))

# Consecutive failure threshold - alert operators after N consecutive failures per source
AVAILABILITY_FAILURE_THRESHOLD = int(os.getenv("AVAILABILITY_FAILURE_THRESHOLD", "5"))

# Identical notifications are suppressed for this many hours
AVAILABILITY_NOTIFICATION_SUPPRESSION_HOURS = int(
    os.getenv("AVAILABILITY_NOTIFICATION_SUPPRESSION_HOURS", "24")
)
AVAILABILITY_NOTIFICATION_LOG_RETENTION_DAYS = int(
    os.getenv("AVAILABILITY_NOTIFICATION_LOG_RETENTION_DAYS", "30")
)

# Currency minor unit used when comparing prices
AVAILABILITY_PRICE_DECIMAL_PLACES = int(os.getenv("AVAILABILITY_PRICE_DECIMAL_PLACES", "2"))

# Raw content excerpt length kept on error records
AVAILABILITY_ERROR_EXCERPT_LENGTH = int(os.getenv("AVAILABILITY_ERROR_EXCERPT_LENGTH", "500"))

# Delivery collaborator (dotted path to a BaseDeliveryBackend subclass)
AVAILABILITY_DELIVERY_BACKEND = os.getenv(
    "AVAILABILITY_DELIVERY_BACKEND",
    "availability.services.delivery.LoggingDeliveryBackend",
)
