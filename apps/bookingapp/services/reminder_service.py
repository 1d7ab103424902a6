# apps/bookingapp/services/reminder_service.py
import heapq
import itertools
import logging
import threading
from dataclasses import replace
from datetime import timedelta

from apps.bookingapp.conf import get_scheduling_settings
from apps.bookingapp.domain import (
    AppointmentStatus,
    ReminderSpec,
    ReminderStatus,
    ScheduledReminder,
)
from apps.bookingapp.services.store import bounded_store
from core.exceptions import ExternalServiceException, ResourceNotFoundException
from utils.timeouts import call_with_timeout

logger = logging.getLogger(__name__)


def default_reminder_specs():
    """Reminder presets from ``SCHEDULING["DEFAULT_REMINDERS"]``."""
    return [
        ReminderSpec.from_config(config)
        for config in get_scheduling_settings()["DEFAULT_REMINDERS"]
    ]


def describe_lead_time(offset: timedelta) -> str:
    if offset.days >= 7 and offset.days % 7 == 0:
        weeks = offset.days // 7
        return f"in {weeks} week{'s' if weeks > 1 else ''}"
    if offset.days > 0:
        hours = offset.days * 24 + offset.seconds // 3600
        return f"in {hours} hours"
    if offset.seconds // 3600 > 0:
        hours = offset.seconds // 3600
        return f"in {hours} hour{'s' if hours > 1 else ''}"
    minutes = offset.seconds // 60
    return f"in {minutes} minutes"


def build_reminder_content(appointment, spec):
    """Generate the channel-independent reminder text for an appointment."""
    title = appointment.title or "your appointment"
    start = appointment.interval.start
    time_str = start.strftime("%I:%M %p")
    lead = describe_lead_time(spec.offset_before_start)

    return {
        "subject": f"Reminder: {title} on {start.strftime('%Y-%m-%d')}",
        "message": f"Reminder: Your appointment for {title} is {lead} at {time_str}.",
        "start_time": start.isoformat(),
        "recipients": list(appointment.participants),
    }


class ReminderScheduler:
    """
    Time-ordered reminder queue.

    Reminders live in a ``heapq`` keyed by fire time and are persisted through
    the store, so any process can ``restore()`` the queue and act as the
    firing driver. Dispatch re-checks the appointment right before sending.
    """

    def __init__(self, store, dispatcher, timeout=5):
        self.store = bounded_store(store, timeout)
        self.dispatcher = dispatcher
        self.timeout = timeout
        self._queue = []
        self._pending = {}
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def schedule(self, appointment, specs=None, now=None):
        """
        Create one reminder per spec at ``start - offset``.

        Reminders already due (``fire_at <= now``) are kept and go out on the
        next ``fire_due`` tick.

        Returns:
            List of ScheduledReminder objects
        """
        if specs is None:
            specs = (
                appointment.reminder_specs
                if appointment.reminder_specs is not None
                else default_reminder_specs()
            )

        reminders = []
        for spec in specs:
            reminder = ScheduledReminder(
                appointment_id=appointment.id,
                channel=spec.channel,
                fire_at=appointment.interval.start - spec.offset_before_start,
                content=build_reminder_content(appointment, spec),
                appointment_version=appointment.version,
            )
            self.store.save_reminder(reminder)
            self._push(reminder)
            reminders.append(reminder)

            if now is not None and reminder.fire_at <= now:
                logger.debug(f"Reminder {reminder.id} is already due at scheduling time")

        logger.info(f"Scheduled {len(reminders)} reminders for appointment {appointment.id}")
        return reminders

    def cancel_all(self, appointment_id):
        """
        Cancel every scheduled reminder of an appointment.

        Idempotent: a second call finds nothing left to cancel. The store is
        written first; if it fails the queue is left untouched and the
        reminders are caught by the version check when they come due.

        Returns:
            Number of reminders cancelled
        """
        cancelled = {
            reminder.id: reminder
            for reminder in self.store.list_reminders(
                status=ReminderStatus.SCHEDULED, appointment_id=appointment_id
            )
        }
        with self._lock:
            for reminder_id, reminder in self._pending.items():
                if reminder.appointment_id == appointment_id:
                    cancelled.setdefault(reminder_id, replace(reminder))

        for reminder in cancelled.values():
            reminder.status = ReminderStatus.CANCELLED
            self.store.save_reminder(reminder)

        with self._lock:
            for reminder_id in cancelled:
                self._pending.pop(reminder_id, None)
            self._queue = [entry for entry in self._queue if entry[2] not in cancelled]
            heapq.heapify(self._queue)

        if cancelled:
            logger.info(
                f"Cancelled {len(cancelled)} reminders for appointment {appointment_id}"
            )
        return len(cancelled)

    def restore(self):
        """
        Load persisted scheduled reminders into the queue.

        Returns:
            Number of reminders added
        """
        added = 0
        for reminder in self.store.list_reminders(status=ReminderStatus.SCHEDULED):
            with self._lock:
                known = reminder.id in self._pending
            if not known:
                self._push(reminder)
                added += 1

        if added:
            logger.debug(f"Restored {added} reminders from the store")
        return added

    def fire_due(self, now):
        """
        Dispatch every reminder whose fire time has passed.

        Each reminder fires at most once. A reminder whose appointment is no
        longer confirmed, or has been rescheduled since the reminder was built,
        is cancelled instead of sent; a dispatch failure marks it failed
        without retry.

        Returns:
            List of reminders processed in this tick
        """
        self.restore()

        due = []
        with self._lock:
            while self._queue and self._queue[0][0] <= now:
                _, _, reminder_id = heapq.heappop(self._queue)
                reminder = self._pending.pop(reminder_id, None)
                if reminder is not None and reminder.status == ReminderStatus.SCHEDULED:
                    due.append(reminder)

        for reminder in due:
            self._fire(reminder, now)

        if due:
            fired = sum(1 for r in due if r.status == ReminderStatus.FIRED)
            logger.info(f"Processed {len(due)} due reminders, {fired} sent")
        return due

    def _fire(self, reminder, now):
        # Another driver may already have handled or cancelled it
        stored = {
            r.id: r for r in self.store.list_reminders(appointment_id=reminder.appointment_id)
        }
        if reminder.id in stored and stored[reminder.id].status != ReminderStatus.SCHEDULED:
            reminder.status = stored[reminder.id].status
            return

        try:
            appointment = self.store.load(reminder.appointment_id)
        except ResourceNotFoundException:
            appointment = None

        if appointment is None or appointment.status != AppointmentStatus.CONFIRMED:
            reminder.status = ReminderStatus.CANCELLED
            reminder.error = "Appointment is no longer confirmed"
            self.store.save_reminder(reminder)
            logger.debug(f"Skipped reminder {reminder.id}: appointment not confirmed")
            return

        if reminder.is_stale_for(appointment):
            reminder.status = ReminderStatus.CANCELLED
            reminder.error = "Appointment was rescheduled"
            self.store.save_reminder(reminder)
            logger.info(
                f"Dropped stale reminder {reminder.id}: built from version "
                f"{reminder.appointment_version}, appointment is at {appointment.version}"
            )
            return

        payload = {
            **reminder.content,
            "appointment_id": reminder.appointment_id,
            "reminder_id": reminder.id,
            "channel": reminder.channel,
        }

        try:
            call_with_timeout(
                self.dispatcher.dispatch,
                reminder.channel,
                payload,
                timeout=self.timeout,
                collaborator=f"notifications:{reminder.channel}",
            )
            reminder.status = ReminderStatus.FIRED
            reminder.fired_at = now
        except ExternalServiceException as e:
            reminder.status = ReminderStatus.FAILED
            reminder.error = str(e.message)
            logger.error(f"Reminder {reminder.id} failed on {reminder.channel}: {e.message}")

        self.store.save_reminder(reminder)

    def _push(self, reminder):
        with self._lock:
            self._pending[reminder.id] = reminder
            heapq.heappush(self._queue, (reminder.fire_at, next(self._sequence), reminder.id))
