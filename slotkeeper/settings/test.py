"""
Test settings for SlotKeeper.

These settings override the base settings for test environments.
"""

from .base import *  # noqa: F401,F403

# In-memory SQLite for speed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Local-memory cache so distributed locks work without Redis
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "slotkeeper-tests",
    }
}

# Capture outgoing mail in django.core.mail.outbox
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Run Celery tasks synchronously in tests
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

TIME_ZONE = "UTC"

SCHEDULING = {
    "LOCK_TIMEOUT_SECONDS": 2,
    "COLLABORATOR_TIMEOUT_SECONDS": 1,
}

# Disable logging during tests to speed them up
LOGGING = {
    "version": 1,
    "disable_existing_loggers": True,
    "handlers": {
        "null": {
            "class": "logging.NullHandler",
        },
    },
    "loggers": {
        "": {
            "handlers": ["null"],
            "level": "CRITICAL",
        },
    },
}
