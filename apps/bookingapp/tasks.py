# apps/bookingapp/tasks.py
from celery import shared_task
from django.utils import timezone

from apps.bookingapp.services.booking_service import get_booking_engine
from utils.distributed_locks import with_distributed_lock


@shared_task
@with_distributed_lock(key_func=lambda *args, **kwargs: "reminders:fire_due", timeout=1)
def fire_due_reminders():
    """Dispatch every reminder whose fire time has passed"""
    processed = get_booking_engine().fire_due_reminders(timezone.now())
    return f"Processed {len(processed)} reminders"


@shared_task
def restore_reminders():
    """Reload persisted reminders into this worker's queue, e.g. after a restart"""
    count = get_booking_engine().reminders.restore()
    return f"Restored {count} reminders"
