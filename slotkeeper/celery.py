"""
Celery configuration for SlotKeeper.

Runs the reminder driver: a beat entry fires due reminders every minute.
"""

import logging
import os

from celery import Celery
from celery.signals import task_failure, task_retry, task_success

logger = logging.getLogger(__name__)

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "slotkeeper.settings.base")

app = Celery("slotkeeper")

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.task_routes = {
    "apps.bookingapp.tasks.*": {"queue": "bookings"},
}

app.conf.beat_schedule = {
    "fire-due-reminders": {
        "task": "apps.bookingapp.tasks.fire_due_reminders",
        "schedule": 60.0,  # Every minute
        "options": {"expires": 55},
    },
}


@task_success.connect
def task_success_handler(sender=None, **kwargs):
    logger.info(f"Task {sender.name} succeeded")


@task_failure.connect
def task_failure_handler(sender=None, exception=None, **kwargs):
    logger.error(f"Task {sender.name} failed: {exception}")


@task_retry.connect
def task_retry_handler(sender=None, reason=None, **kwargs):
    logger.warning(f"Task {sender.name} retrying: {reason}")
