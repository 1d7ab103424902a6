# slotkeeper/settings/base.py
"""
SlotKeeper – shared Django settings.

Environment-specific values **must** come from the environment (.env or real env
vars). Do not hard-code credentials or hostnames in this file.
"""

import os
from pathlib import Path

from decouple import config  # Use python-decouple for env vars
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Paths & dotenv
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

load_dotenv(BASE_DIR / ".env")

# ---------------------------------------------------------------------------
# Core toggles
# ---------------------------------------------------------------------------
SECRET_KEY = config("SECRET_KEY", default="django-insecure-fallback-key-change-me-in-env")
DEBUG = config("DEBUG", default=False, cast=bool)
ALLOWED_HOSTS = config(
    "ALLOWED_HOSTS", default="127.0.0.1,localhost", cast=lambda v: [s.strip() for s in v.split(",")]
)

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "core.apps.CoreConfig",
    "utils.apps.UtilsConfig",
    "apps.bookingapp.apps.BookingAppConfig",
]

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
DATABASES = {
    "default": {
        "ENGINE": config("DB_ENGINE", default="django.db.backends.postgresql"),
        "NAME": config("DB_NAME", default="slotkeeper"),
        "USER": config("DB_USER", default="slotkeeper"),
        "PASSWORD": config("DB_PASSWORD", default=""),
        "HOST": config("DB_HOST", default="localhost"),
        "PORT": config("DB_PORT", default="5432"),
        "CONN_MAX_AGE": config("DB_CONN_MAX_AGE", default=60, cast=int),
    }
}

# Store queries must finish well inside SCHEDULING["LOCK_EXPIRES_SECONDS"]
DB_STATEMENT_TIMEOUT_MS = config("DB_STATEMENT_TIMEOUT_MS", default=5000, cast=int)
if "postgresql" in DATABASES["default"]["ENGINE"]:
    DATABASES["default"]["OPTIONS"] = {
        "connect_timeout": config("DB_CONNECT_TIMEOUT", default=5, cast=int),
        "options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}",
    }

# ---------------------------------------------------------------------------
# Cache (backs the distributed booking locks)
# ---------------------------------------------------------------------------
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": config("REDIS_URL", default="redis://localhost:6379/1"),
        "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
    }
}

# ---------------------------------------------------------------------------
# Celery
# ---------------------------------------------------------------------------
CELERY_BROKER_URL = config("CELERY_BROKER_URL", default="redis://localhost:6379/0")
CELERY_RESULT_BACKEND = config("CELERY_RESULT_BACKEND", default=CELERY_BROKER_URL)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = config("TIME_ZONE", default="UTC")

# ---------------------------------------------------------------------------
# I18N
# ---------------------------------------------------------------------------
LANGUAGE_CODE = "en"
TIME_ZONE = config("TIME_ZONE", default="UTC")
USE_I18N = True
USE_TZ = True

# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------
EMAIL_BACKEND = config("EMAIL_BACKEND", default="django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = config("EMAIL_HOST", default="localhost")
EMAIL_PORT = config("EMAIL_PORT", default=587, cast=int)
EMAIL_USE_TLS = config("EMAIL_USE_TLS", default=True, cast=bool)
EMAIL_HOST_USER = config("EMAIL_HOST_USER", default="")
EMAIL_HOST_PASSWORD = config("EMAIL_HOST_PASSWORD", default="")
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="noreply@slotkeeper.local")

# ---------------------------------------------------------------------------
# Scheduling engine (merged over apps.bookingapp.conf.DEFAULTS)
# ---------------------------------------------------------------------------
SCHEDULING = {
    "MIN_DURATION_MINUTES": config("SCHEDULING_MIN_DURATION_MINUTES", default=15, cast=int),
    "MAX_DURATION_MINUTES": config("SCHEDULING_MAX_DURATION_MINUTES", default=480, cast=int),
    "SLOT_GRANULARITY_MINUTES": config("SCHEDULING_SLOT_GRANULARITY", default=15, cast=int),
    "RESCHEDULE_SEARCH_DAYS": config("SCHEDULING_RESCHEDULE_SEARCH_DAYS", default=14, cast=int),
    "LOCK_TIMEOUT_SECONDS": config("SCHEDULING_LOCK_TIMEOUT", default=10, cast=int),
    "LOCK_EXPIRES_SECONDS": config("SCHEDULING_LOCK_EXPIRES", default=60, cast=int),
    "COLLABORATOR_TIMEOUT_SECONDS": config("SCHEDULING_COLLABORATOR_TIMEOUT", default=5, cast=int),
}

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_DIR = Path(config("LOG_DIR", default=str(BASE_DIR / "logs")))
os.makedirs(LOG_DIR, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "simple": {"format": "{levelname} {message}", "style": "{"},
    },
    "handlers": {
        "console": {
            "level": "DEBUG" if DEBUG else "INFO",
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
        "file": {
            "level": "INFO",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / "slotkeeper.log",
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": True,
        },
        "slotkeeper": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": False,
        },
        "algorithms": {
            "handlers": ["console", "file"],
            "level": "WARNING",
            "propagate": False,
        },
        "utils": {
            "handlers": ["console", "file"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
