"""
Availability checking algorithm.

Decides whether a candidate interval is bookable by evaluating, in order:

1. The business-hours window of the candidate's calendar day
2. Overlap with existing non-cancelled bookings in scope
3. Overlap with explicit blocked ranges (vacations, holidays)

The check is a pure query over one consistent snapshot of the rule and the
existing bookings; it never mutates anything.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from datetime import tzinfo as TzInfo
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from .time_range import TimeInterval, TimeOfDayRange, overlaps

logger = logging.getLogger(__name__)

OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
BOOKED = "booked"
BLOCKED = "blocked"


@dataclass(frozen=True)
class BlockedInterval:
    """An ad-hoc override that makes a range unbookable."""

    interval: TimeInterval
    reason: str = ""

    def to_dict(self):
        return {**self.interval.to_dict(), "reason": self.reason}


@dataclass(frozen=True)
class AvailabilityRule:
    """
    Immutable snapshot of an owner's business hours and blocked ranges.

    ``business_hours`` maps Python weekdays (0 = Monday) to a wall-clock range,
    or ``None`` when closed. Missing weekdays are closed too.
    """

    business_hours: Mapping[int, Optional[TimeOfDayRange]] = field(default_factory=dict)
    blocked: Tuple[BlockedInterval, ...] = ()
    tzinfo: Optional[TzInfo] = None

    def __post_init__(self):
        object.__setattr__(self, "business_hours", MappingProxyType(dict(self.business_hours)))
        object.__setattr__(self, "blocked", tuple(self.blocked))

    def hours_for(self, day: date) -> Optional[TimeOfDayRange]:
        return self.business_hours.get(day.weekday())

    def window_for(self, day: date, fallback_tz: Optional[TzInfo] = None) -> Optional[TimeInterval]:
        """Business-hours window anchored to ``day``, or ``None`` if closed."""
        hours = self.hours_for(day)
        if hours is None:
            return None
        return hours.on(day, tzinfo=self.tzinfo or fallback_tz)

    def local_day(self, instant: datetime) -> date:
        """Calendar day of ``instant`` in the rule's timezone."""
        if self.tzinfo is not None and instant.tzinfo is not None:
            return instant.astimezone(self.tzinfo).date()
        return instant.date()

    def window_containing(self, instant: datetime) -> Optional[TimeInterval]:
        return self.window_for(self.local_day(instant), fallback_tz=instant.tzinfo)


@dataclass(frozen=True)
class AvailabilityContext:
    """
    Everything one availability check reads.

    Appointments are in scope when they belong to ``owner_id`` or hold one of
    ``resources``. When ``owner_id`` is ``None`` every supplied appointment is
    in scope.
    """

    rule: AvailabilityRule
    appointments: Sequence[Any] = ()
    owner_id: Optional[str] = None
    resources: FrozenSet[str] = frozenset()
    exclude_appointment_id: Optional[str] = None

    def in_scope(self, appointment) -> bool:
        if not appointment.is_active:
            return False
        if self.exclude_appointment_id and appointment.id == self.exclude_appointment_id:
            return False
        if self.owner_id is None:
            return True
        if appointment.owner_id == self.owner_id:
            return True
        return bool(self.resources & set(appointment.resources))


@dataclass
class AvailabilityResult:
    available: bool
    reason: Optional[str] = None
    conflicting_appointments: List[Any] = field(default_factory=list)
    blocked_ranges: List[BlockedInterval] = field(default_factory=list)
    business_hours: Optional[TimeInterval] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "reason": self.reason,
            "conflicting_appointments": [a.id for a in self.conflicting_appointments],
            "blocked_ranges": [b.to_dict() for b in self.blocked_ranges],
            "business_hours": self.business_hours.to_dict() if self.business_hours else None,
        }


def check_availability(
    candidate: TimeInterval, context: AvailabilityContext
) -> AvailabilityResult:
    """
    Evaluate whether ``candidate`` can be booked.

    Args:
        candidate: The interval being requested
        context: Rule snapshot and existing bookings to check against

    Returns:
        AvailabilityResult. Unlike the business-hours step, the booking and
        blocked-range scans are not short-circuited: every overlapping booking
        and blocked range is reported so callers can explain the failure and
        suggest alternatives.
    """
    rule = context.rule

    # 1-2. Business-hours window for the candidate's day
    window = rule.window_containing(candidate.start)
    if window is None or not window.contains_range(candidate):
        logger.debug(f"Candidate {candidate} is outside business hours ({window})")
        return AvailabilityResult(
            available=False,
            reason=OUTSIDE_BUSINESS_HOURS,
            business_hours=window,
        )

    # 3. Existing bookings
    conflicting = [
        appointment
        for appointment in context.appointments
        if context.in_scope(appointment) and overlaps(candidate, appointment.interval)
    ]

    # 4. Blocked ranges
    blocked = [
        blocked_range
        for blocked_range in rule.blocked
        if overlaps(candidate, blocked_range.interval)
    ]

    # 5. Verdict
    reason = None
    if conflicting:
        reason = BOOKED
    elif blocked:
        reason = BLOCKED

    return AvailabilityResult(
        available=not conflicting and not blocked,
        reason=reason,
        conflicting_appointments=conflicting,
        blocked_ranges=blocked,
        business_hours=window,
    )
