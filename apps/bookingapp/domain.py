# apps/bookingapp/domain.py
"""
Storage-independent booking entities.

The engine works on these plain objects; the ORM models in ``models.py`` are
only one way of persisting them (see ``services/store.py``).
"""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from algorithms.availability.time_range import TimeInterval
from core.exceptions import InvalidOperationException, ValidationException

if TYPE_CHECKING:
    from algorithms.availability.conflict_resolver import ResolutionRecord


class AppointmentStatus(str, Enum):
    """Enum for appointment status values"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Confirmed -> Confirmed is a reschedule.
ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED},
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
}


class ReminderStatus(str, Enum):
    SCHEDULED = "scheduled"
    FIRED = "fired"
    CANCELLED = "cancelled"
    FAILED = "failed"


REMINDER_TIMINGS = {
    "1_week_before": timedelta(weeks=1),
    "24_hours_before": timedelta(hours=24),
    "2_hours_before": timedelta(hours=2),
    "1_hour_before": timedelta(hours=1),
    "30_minutes_before": timedelta(minutes=30),
    "15_minutes_before": timedelta(minutes=15),
}


@dataclass(frozen=True)
class ReminderSpec:
    """How long before the start a reminder fires, and through which channel."""

    offset_before_start: timedelta
    channel: str

    @classmethod
    def from_timing(cls, channel: str, timing: str) -> "ReminderSpec":
        """
        Build a spec from a named timing such as ``"2_hours_before"``.

        Unknown timing names fall back to one hour before the start.
        """
        offset = REMINDER_TIMINGS.get(timing, timedelta(hours=1))
        return cls(offset_before_start=offset, channel=channel)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ReminderSpec":
        """Build a spec from ``{"channel": ..., "timing": ...}`` or ``{"channel": ..., "minutes": ...}``."""
        if "minutes" in config:
            return cls(timedelta(minutes=int(config["minutes"])), config["channel"])
        return cls.from_timing(config["channel"], config.get("timing", ""))


@dataclass
class ScheduledReminder:
    appointment_id: str
    channel: str
    fire_at: datetime
    status: ReminderStatus = ReminderStatus.SCHEDULED
    content: Dict[str, Any] = field(default_factory=dict)
    fired_at: Optional[datetime] = None
    error: str = ""
    # Appointment version the reminder was built from
    appointment_version: Optional[int] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_stale_for(self, appointment) -> bool:
        """True once the appointment has been moved or changed since scheduling."""
        return (
            self.appointment_version is not None
            and self.appointment_version != appointment.version
        )

    def to_dict(self):
        return {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "appointment_version": self.appointment_version,
            "channel": self.channel,
            "fire_at": self.fire_at.isoformat(),
            "status": self.status.value,
            "fired_at": self.fired_at.isoformat() if self.fired_at else None,
            "error": self.error,
        }


@dataclass
class Appointment:
    """Appointment booking record with status lifecycle and version tracking"""

    owner_id: str
    interval: TimeInterval
    title: str = ""
    description: str = ""
    status: AppointmentStatus = AppointmentStatus.PENDING
    resources: Set[str] = field(default_factory=set)
    participants: List[str] = field(default_factory=list)
    required_participants: Set[str] = field(default_factory=set)
    reminder_specs: Optional[List[ReminderSpec]] = None
    version: int = 1
    conflict_resolution: Optional["ResolutionRecord"] = None
    cancellation_reason: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        self.resources = set(self.resources)
        self.participants = list(self.participants)
        self.required_participants = set(self.required_participants)
        unknown = self.required_participants - set(self.participants)
        if unknown:
            raise ValidationException(
                f"Required participants {sorted(unknown)} are not listed as participants",
                reason="invalid_participants",
            )

    @property
    def is_active(self) -> bool:
        """Cancelled appointments never take part in overlap checks."""
        return self.status != AppointmentStatus.CANCELLED

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, new_status: AppointmentStatus, at: Optional[datetime] = None):
        """Move through the status state machine, bumping the version."""
        if not self.can_transition_to(new_status):
            raise InvalidOperationException(
                f"Appointment {self.id} cannot move from {self.status.value} "
                f"to {new_status.value}"
            )
        self.status = new_status
        self.touch(at)

    def touch(self, at: Optional[datetime] = None):
        """Record a mutation."""
        self.version += 1
        if at is not None:
            self.updated_at = at

    def copy(self) -> "Appointment":
        return copy.deepcopy(self)

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "start_time": self.interval.start.isoformat(),
            "end_time": self.interval.end.isoformat(),
            "status": self.status.value,
            "resources": sorted(self.resources),
            "participants": list(self.participants),
            "required_participants": sorted(self.required_participants),
            "version": self.version,
            "conflict_resolution": (
                self.conflict_resolution.to_dict() if self.conflict_resolution else None
            ),
            "cancellation_reason": self.cancellation_reason,
        }
