# apps/bookingapp/services/store.py
"""
Durable appointment stores.

Both implementations enforce optimistic concurrency: writing an appointment
at version ``n`` only succeeds if the stored copy is at version ``n - 1``.
"""

import copy
import logging
import threading

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from algorithms.availability.conflict_resolver import ResolutionRecord
from algorithms.availability.time_range import TimeInterval, overlaps
from apps.bookingapp import models
from apps.bookingapp.domain import (
    Appointment,
    AppointmentStatus,
    ReminderSpec,
    ReminderStatus,
    ScheduledReminder,
)
from core.exceptions import (
    ExternalServiceException,
    ResourceNotFoundException,
    SchedulingConflictException,
)
from utils.timeouts import call_with_timeout

logger = logging.getLogger(__name__)


class AppointmentStore:
    """Interface every appointment store implements."""

    def save(self, appointment):
        raise NotImplementedError

    def load(self, appointment_id):
        raise NotImplementedError

    def list_active(self, owner_id=None, date_range=None, tzinfo=None):
        """
        Non-cancelled appointments, optionally filtered by owner and by the
        days they touch.
        """
        raise NotImplementedError

    def save_reminder(self, reminder):
        raise NotImplementedError

    def list_reminders(self, status=None, appointment_id=None):
        raise NotImplementedError


def _stale_write(appointment, stored_version):
    logger.warning(
        f"Rejected write of appointment {appointment.id} at version "
        f"{appointment.version}; stored version is {stored_version}"
    )
    return SchedulingConflictException(
        f"Appointment {appointment.id} was modified concurrently"
    )


class InMemoryAppointmentStore(AppointmentStore):
    """
    Thread-safe store backed by dictionaries.

    Objects are copied on the way in and on the way out, so callers never
    share mutable state with the store.
    """

    def __init__(self):
        self._appointments = {}
        self._reminders = {}
        self._lock = threading.RLock()

    def save(self, appointment):
        with self._lock:
            stored = self._appointments.get(appointment.id)
            if stored is not None and stored.version != appointment.version - 1:
                raise _stale_write(appointment, stored.version)
            self._appointments[appointment.id] = appointment.copy()
        return appointment

    def load(self, appointment_id):
        with self._lock:
            stored = self._appointments.get(str(appointment_id))
            if stored is None:
                raise ResourceNotFoundException(f"Appointment {appointment_id} not found")
            return stored.copy()

    def list_active(self, owner_id=None, date_range=None, tzinfo=None):
        with self._lock:
            snapshot = [a.copy() for a in self._appointments.values()]

        result = []
        for appointment in snapshot:
            if not appointment.is_active:
                continue
            if owner_id is not None and appointment.owner_id != owner_id:
                continue
            if date_range is not None:
                window = date_range.as_interval(
                    tzinfo if tzinfo is not None else appointment.interval.start.tzinfo
                )
                if not overlaps(window, appointment.interval):
                    continue
            result.append(appointment)

        return sorted(result, key=lambda a: a.interval.start)

    def save_reminder(self, reminder):
        with self._lock:
            self._reminders[reminder.id] = copy.deepcopy(reminder)
        return reminder

    def list_reminders(self, status=None, appointment_id=None):
        with self._lock:
            reminders = [copy.deepcopy(r) for r in self._reminders.values()]
        if status is not None:
            reminders = [r for r in reminders if r.status == status]
        if appointment_id is not None:
            reminders = [r for r in reminders if r.appointment_id == appointment_id]
        return sorted(reminders, key=lambda r: r.fire_at)


class DjangoAppointmentStore(AppointmentStore):
    """
    Store backed by the ``Appointment`` and ``AppointmentReminder`` models.

    Queries run on the caller's connection so a commit joins the caller's
    transaction. The database bounds them through the ``statement_timeout``
    and ``connect_timeout`` options in ``DATABASES``.
    """

    enforces_timeout = True

    def save(self, appointment):
        try:
            with transaction.atomic():
                fields = self._to_fields(appointment)
                if appointment.version > 1:
                    updated = models.Appointment.objects.filter(
                        id=appointment.id, version=appointment.version - 1
                    ).update(**fields)
                    if updated:
                        return appointment

                    stored = (
                        models.Appointment.objects.filter(id=appointment.id)
                        .values_list("version", flat=True)
                        .first()
                    )
                    if stored is not None:
                        raise _stale_write(appointment, stored)

                models.Appointment.objects.create(id=appointment.id, **fields)
        except DatabaseError as e:
            logger.error(f"Error saving appointment {appointment.id}: {e}")
            raise ExternalServiceException(
                f"Could not persist appointment {appointment.id}", collaborator="store"
            )

        return appointment

    def load(self, appointment_id):
        try:
            row = models.Appointment.objects.get(id=appointment_id)
        except (models.Appointment.DoesNotExist, ValidationError, ValueError):
            raise ResourceNotFoundException(f"Appointment {appointment_id} not found")
        return self._to_domain(row)

    def list_active(self, owner_id=None, date_range=None, tzinfo=None):
        queryset = models.Appointment.objects.exclude(
            status=AppointmentStatus.CANCELLED.value
        )
        if owner_id is not None:
            queryset = queryset.filter(owner_id=owner_id)
        if date_range is not None:
            window = date_range.as_interval(tzinfo or timezone.get_current_timezone())
            queryset = queryset.filter(start_time__lt=window.end, end_time__gt=window.start)

        return [self._to_domain(row) for row in queryset.order_by("start_time")]

    def save_reminder(self, reminder):
        try:
            models.AppointmentReminder.objects.update_or_create(
                id=reminder.id,
                defaults={
                    "appointment_id": reminder.appointment_id,
                    "channel": reminder.channel,
                    "fire_at": reminder.fire_at,
                    "appointment_version": reminder.appointment_version,
                    "status": reminder.status.value,
                    "content": reminder.content,
                    "fired_at": reminder.fired_at,
                    "error": reminder.error,
                },
            )
        except DatabaseError as e:
            logger.error(f"Error saving reminder {reminder.id}: {e}")
            raise ExternalServiceException(
                f"Could not persist reminder {reminder.id}", collaborator="store"
            )
        return reminder

    def list_reminders(self, status=None, appointment_id=None):
        queryset = models.AppointmentReminder.objects.all()
        if status is not None:
            queryset = queryset.filter(status=ReminderStatus(status).value)
        if appointment_id is not None:
            queryset = queryset.filter(appointment_id=appointment_id)

        return [
            ScheduledReminder(
                id=str(row.id),
                appointment_id=str(row.appointment_id),
                channel=row.channel,
                fire_at=row.fire_at,
                appointment_version=row.appointment_version,
                status=ReminderStatus(row.status),
                content=row.content,
                fired_at=row.fired_at,
                error=row.error,
            )
            for row in queryset.order_by("fire_at")
        ]

    def _to_fields(self, appointment):
        return {
            "owner_id": appointment.owner_id,
            "title": appointment.title,
            "description": appointment.description,
            "start_time": appointment.interval.start,
            "end_time": appointment.interval.end,
            "status": appointment.status.value,
            "resources": sorted(appointment.resources),
            "participants": list(appointment.participants),
            "required_participants": sorted(appointment.required_participants),
            "reminder_specs": (
                [
                    {
                        "channel": spec.channel,
                        "minutes": int(spec.offset_before_start.total_seconds() // 60),
                    }
                    for spec in appointment.reminder_specs
                ]
                if appointment.reminder_specs is not None
                else None
            ),
            "conflict_resolution": (
                appointment.conflict_resolution.to_dict()
                if appointment.conflict_resolution
                else None
            ),
            "cancellation_reason": appointment.cancellation_reason,
            "version": appointment.version,
            "created_at": appointment.created_at or timezone.now(),
            "updated_at": appointment.updated_at or timezone.now(),
        }

    def _to_domain(self, row):
        return Appointment(
            id=str(row.id),
            owner_id=row.owner_id,
            interval=TimeInterval(row.start_time, row.end_time),
            title=row.title,
            description=row.description,
            status=AppointmentStatus(row.status),
            resources=set(row.resources or []),
            participants=list(row.participants or []),
            required_participants=set(row.required_participants or []),
            reminder_specs=(
                [ReminderSpec.from_config(spec) for spec in row.reminder_specs]
                if row.reminder_specs is not None
                else None
            ),
            version=row.version,
            conflict_resolution=(
                ResolutionRecord.from_dict(row.conflict_resolution)
                if row.conflict_resolution
                else None
            ),
            cancellation_reason=row.cancellation_reason,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class TimedAppointmentStore(AppointmentStore):
    """
    Bounds every call into a wrapped store by ``timeout`` seconds.

    A call that does not return in time raises ``ExternalServiceException``
    for collaborator ``store``. Errors the store raises itself (missing
    appointment, stale write) pass through unchanged.
    """

    def __init__(self, store, timeout=5):
        self.store = store
        self.timeout = timeout

    def save(self, appointment):
        return self._call("save", appointment)

    def load(self, appointment_id):
        return self._call("load", appointment_id)

    def list_active(self, owner_id=None, date_range=None, tzinfo=None):
        return self._call("list_active", owner_id, date_range, tzinfo=tzinfo)

    def save_reminder(self, reminder):
        return self._call("save_reminder", reminder)

    def list_reminders(self, status=None, appointment_id=None):
        return self._call("list_reminders", status=status, appointment_id=appointment_id)

    def _call(self, method, *args, **kwargs):
        return call_with_timeout(
            getattr(self.store, method),
            *args,
            timeout=self.timeout,
            collaborator="store",
            **kwargs,
        )


def bounded_store(store, timeout):
    """Wrap ``store`` in a ``TimedAppointmentStore`` unless it bounds itself."""
    if isinstance(store, TimedAppointmentStore) or getattr(store, "enforces_timeout", False):
        return store
    return TimedAppointmentStore(store, timeout=timeout)
