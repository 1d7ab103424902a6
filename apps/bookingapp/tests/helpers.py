# apps/bookingapp/tests/helpers.py
from datetime import date, datetime, time, timezone
from unittest.mock import Mock

from algorithms.availability.availability_checker import AvailabilityRule
from algorithms.availability.time_range import TimeInterval, TimeOfDayRange
from apps.bookingapp.domain import Appointment, AppointmentStatus
from apps.bookingapp.services.booking_service import BookingRequest, BookingService
from apps.bookingapp.services.collaborators import StaticAvailabilityRuleProvider, SyncResult
from apps.bookingapp.services.store import InMemoryAppointmentStore

UTC = timezone.utc

# A Monday; the engine clock sits on the Sunday before
DAY = date(2030, 1, 7)
NOW = datetime(2030, 1, 6, 8, 0, tzinfo=UTC)


def at(hour, minute=0, day=DAY):
    return datetime.combine(day, time(hour, minute), tzinfo=UTC)


def slot(start, end, day=DAY):
    return TimeInterval(at(*start, day=day), at(*end, day=day))


def weekday_rule(blocked=()):
    hours = {weekday: TimeOfDayRange.parse("09:00", "17:00") for weekday in range(5)}
    return AvailabilityRule(business_hours=hours, blocked=tuple(blocked), tzinfo=UTC)


def mock_calendar():
    calendar = Mock()
    calendar.push.return_value = SyncResult(success=True, external_id="evt-1")
    calendar.remove.return_value = SyncResult(success=True)
    return calendar


def make_service(store=None, rule=None, clock=None, **kwargs):
    """BookingService over an in-memory store with mocked collaborators."""
    return BookingService(
        store=store if store is not None else InMemoryAppointmentStore(),
        rule_provider=StaticAvailabilityRuleProvider(rule or weekday_rule()),
        dispatcher=kwargs.pop("dispatcher", Mock()),
        calendar=kwargs.pop("calendar", mock_calendar()),
        clock=clock or (lambda: NOW),
        **kwargs,
    )


def request(start, end, owner_id="owner-1", day=DAY, **kwargs):
    kwargs.setdefault("title", "Consultation")
    return BookingRequest(owner_id=owner_id, interval=slot(start, end, day=day), **kwargs)


def confirmed(start, end, owner_id="owner-1", day=DAY, **kwargs):
    return Appointment(
        owner_id=owner_id,
        interval=slot(start, end, day=day),
        status=AppointmentStatus.CONFIRMED,
        version=2,
        **kwargs,
    )
