# tests/unit/helpers.py
"""Shared builders for algorithm tests."""

from datetime import date, datetime, time

from algorithms.availability.availability_checker import AvailabilityContext, AvailabilityRule
from algorithms.availability.time_range import TimeInterval, TimeOfDayRange
from apps.bookingapp.domain import Appointment, AppointmentStatus

# A Monday
DAY = date(2030, 1, 7)

WEEKDAY_HOURS = {weekday: TimeOfDayRange.parse("09:00", "17:00") for weekday in range(5)}


def at(hour, minute=0, day=DAY):
    return datetime.combine(day, time(hour, minute))


def slot(start, end, day=DAY):
    """``slot((10, 0), (10, 30))`` -> TimeInterval on ``day``."""
    return TimeInterval(at(*start, day=day), at(*end, day=day))


def make_rule(blocked=()):
    return AvailabilityRule(business_hours=WEEKDAY_HOURS, blocked=tuple(blocked))


def booking(start, end, owner_id="owner-1", status=AppointmentStatus.CONFIRMED, day=DAY, **kwargs):
    return Appointment(
        owner_id=owner_id,
        interval=slot(start, end, day=day),
        status=status,
        **kwargs,
    )


def provider_for(appointments, rule=None):
    """Context provider returning every appointment that touches the day."""
    rule = rule or make_rule()

    def provider(day):
        return AvailabilityContext(
            rule=rule,
            appointments=[a for a in appointments if a.interval.start.date() == day],
        )

    return provider
