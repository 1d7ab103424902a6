# apps/bookingapp/services/collaborators.py
"""
External collaborators of the booking engine.

The engine never talks to calendars, mail servers or rule storage directly;
it goes through the small interfaces defined here so they can be swapped in
settings (``SCHEDULING["CALENDAR_SYNC_PROVIDER"]`` and friends) or mocked in
tests.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Mapping, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone
from django.utils.module_loading import import_string

from algorithms.availability.availability_checker import AvailabilityRule, BlockedInterval
from algorithms.availability.time_range import TimeInterval, TimeOfDayRange
from apps.bookingapp.conf import get_scheduling_settings
from core.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Calendar sync
# ---------------------------------------------------------------------------


@dataclass
class SyncResult:
    success: bool
    external_id: str = ""
    message: str = ""


class CalendarSyncProvider:
    """Pushes committed appointments to an external calendar."""

    name = "calendar"

    def push(self, appointment) -> SyncResult:
        raise NotImplementedError

    def remove(self, appointment) -> SyncResult:
        """Best effort; failures are reported, never raised to the engine."""
        raise NotImplementedError


class DisabledCalendarSync(CalendarSyncProvider):
    """Default provider when no calendar integration is configured."""

    def push(self, appointment) -> SyncResult:
        logger.debug(f"Calendar sync disabled, skipping push of {appointment.id}")
        return SyncResult(success=True, message="Calendar sync disabled")

    def remove(self, appointment) -> SyncResult:
        return SyncResult(success=True, message="Calendar sync disabled")


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationDispatcher:
    """Delivers a payload through a named channel (email, sms, push...)."""

    def dispatch(self, channel: str, payload: Dict[str, Any]):
        raise NotImplementedError


class LoggingChannelBackend:
    """
    Channel backend that only logs.

    Used for ``sms`` and ``push`` until a real gateway is registered.
    """

    def __init__(self, channel: str = "sms"):
        self.channel = channel

    def send(self, payload: Dict[str, Any]) -> bool:
        logger.info(
            f"{self.channel.upper()} to {payload.get('recipients')}: "
            f"{payload.get('message', '')[:50]}..."
        )
        return True


class EmailNotificationDispatcher(NotificationDispatcher):
    """
    Dispatcher that sends ``email`` through Django's mail framework.

    Other channels are delegated to registered backends, i.e. objects with a
    ``send(payload)`` method. Backends can be registered at runtime or listed
    in ``SCHEDULING["CHANNEL_BACKENDS"]`` as dotted paths.
    """

    def __init__(self, from_email: Optional[str] = None, backends: Optional[Mapping] = None):
        self.from_email = from_email or getattr(
            settings, "DEFAULT_FROM_EMAIL", "noreply@slotkeeper.local"
        )
        self._backends = {}

        configured = get_scheduling_settings().get(
            "CHANNEL_BACKENDS",
            {
                "sms": "apps.bookingapp.services.collaborators.LoggingChannelBackend",
                "push": "apps.bookingapp.services.collaborators.LoggingChannelBackend",
            },
        )
        for channel, path in configured.items():
            self.register_channel(channel, import_string(path)(channel))

        for channel, backend in (backends or {}).items():
            self.register_channel(channel, backend)

    def register_channel(self, channel: str, backend):
        self._backends[channel] = backend

    @property
    def channels(self):
        return ["email", *sorted(self._backends)]

    def dispatch(self, channel: str, payload: Dict[str, Any]):
        if channel == "email" and "email" not in self._backends:
            return self._send_email(payload)

        backend = self._backends.get(channel)
        if backend is None:
            raise ExternalServiceException(
                f"No notification backend registered for channel '{channel}'",
                collaborator="notifications",
            )
        return backend.send(payload)

    def _send_email(self, payload: Dict[str, Any]):
        recipients = [r for r in payload.get("recipients") or [] if "@" in r]
        if not recipients:
            logger.debug(f"No email recipients for {payload.get('appointment_id')}")
            return 0

        return send_mail(
            subject=payload.get("subject", ""),
            message=payload.get("message", ""),
            from_email=self.from_email,
            recipient_list=list(recipients),
            fail_silently=False,
        )


# ---------------------------------------------------------------------------
# Availability rules
# ---------------------------------------------------------------------------


class AvailabilityRuleProvider:
    """Supplies the immutable rule snapshot for an owner on a given day."""

    def get_rule(self, owner_id: str, day: date) -> AvailabilityRule:
        raise NotImplementedError


class StaticAvailabilityRuleProvider(AvailabilityRuleProvider):
    """Returns the same rule for everybody, or a per-owner override."""

    def __init__(
        self,
        rule: AvailabilityRule,
        overrides: Optional[Mapping[str, AvailabilityRule]] = None,
    ):
        self.rule = rule
        self.overrides = dict(overrides or {})

    def get_rule(self, owner_id: str, day: date) -> AvailabilityRule:
        return self.overrides.get(owner_id, self.rule)


def parse_business_hours(config: Mapping) -> Dict[int, Optional[TimeOfDayRange]]:
    """Turn ``{0: ("09:00", "17:00"), 5: None}`` into weekday ranges."""
    hours = {}
    for weekday, value in config.items():
        hours[int(weekday)] = TimeOfDayRange.parse(*value) if value else None
    return hours


class SettingsAvailabilityRuleProvider(AvailabilityRuleProvider):
    """
    Builds rules from ``SCHEDULING["BUSINESS_HOURS"]`` and
    ``SCHEDULING["BLOCKED_INTERVALS"]``, anchored in the project time zone.
    """

    def __init__(self, config: Optional[Mapping] = None, tzinfo=None):
        self.config = config or get_scheduling_settings()
        self.tzinfo = tzinfo or timezone.get_default_timezone()
        self.business_hours = parse_business_hours(self.config["BUSINESS_HOURS"])

    def get_rule(self, owner_id: str, day: date) -> AvailabilityRule:
        blocked = [
            BlockedInterval(
                interval=TimeInterval(
                    self._aware(datetime.fromisoformat(entry["start"])),
                    self._aware(datetime.fromisoformat(entry["end"])),
                ),
                reason=entry.get("reason", ""),
            )
            for entry in self.config.get("BLOCKED_INTERVALS", [])
            if entry.get("owner_id") in (None, owner_id)
        ]
        return AvailabilityRule(
            business_hours=self.business_hours,
            blocked=tuple(blocked),
            tzinfo=self.tzinfo,
        )

    def _aware(self, value: datetime) -> datetime:
        if timezone.is_naive(value):
            return timezone.make_aware(value, self.tzinfo)
        return value


def load_collaborator(path_or_factory, *args, **kwargs):
    """Instantiate a collaborator from a dotted path or a callable."""
    factory: Callable = (
        import_string(path_or_factory) if isinstance(path_or_factory, str) else path_or_factory
    )
    return factory(*args, **kwargs)
