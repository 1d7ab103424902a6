# tests/unit/test_availability_checker.py
from datetime import timedelta

from django.test import SimpleTestCase

from algorithms.availability.availability_checker import (
    BLOCKED,
    BOOKED,
    OUTSIDE_BUSINESS_HOURS,
    AvailabilityContext,
    BlockedInterval,
    check_availability,
)
from apps.bookingapp.domain import AppointmentStatus

from .helpers import DAY, booking, make_rule, slot


class CheckAvailabilityTest(SimpleTestCase):
    """Test cases for check_availability"""

    def setUp(self):
        """Set up a rule with weekday business hours 09:00-17:00"""
        self.rule = make_rule()

    def context(self, appointments=(), **kwargs):
        return AvailabilityContext(rule=self.rule, appointments=list(appointments), **kwargs)

    def test_slot_inside_business_hours_is_available(self):
        result = check_availability(slot((10, 0), (10, 30)), self.context())

        self.assertTrue(result.available)
        self.assertIsNone(result.reason)
        self.assertEqual(result.business_hours, slot((9, 0), (17, 0)))

    def test_slot_crossing_closing_time_is_rejected(self):
        result = check_availability(slot((16, 45), (17, 15)), self.context())

        self.assertFalse(result.available)
        self.assertEqual(result.reason, OUTSIDE_BUSINESS_HOURS)

    def test_slot_ending_at_closing_time_is_available(self):
        self.assertTrue(check_availability(slot((16, 30), (17, 0)), self.context()).available)

    def test_closed_day_is_rejected(self):
        saturday = DAY + timedelta(days=5)
        result = check_availability(slot((10, 0), (11, 0), day=saturday), self.context())

        self.assertFalse(result.available)
        self.assertEqual(result.reason, OUTSIDE_BUSINESS_HOURS)
        self.assertIsNone(result.business_hours)

    def test_collects_every_overlapping_booking(self):
        first = booking((10, 0), (10, 30))
        second = booking((10, 30), (11, 0))
        unrelated = booking((14, 0), (15, 0))

        result = check_availability(
            slot((10, 0), (11, 0)), self.context([first, second, unrelated])
        )

        self.assertFalse(result.available)
        self.assertEqual(result.reason, BOOKED)
        self.assertEqual(result.conflicting_appointments, [first, second])

    def test_adjacent_booking_does_not_block(self):
        existing = booking((9, 0), (10, 0))
        self.assertTrue(
            check_availability(slot((10, 0), (10, 30)), self.context([existing])).available
        )

    def test_cancelled_bookings_are_ignored(self):
        cancelled = booking((10, 0), (11, 0), status=AppointmentStatus.CANCELLED)
        result = check_availability(slot((10, 0), (11, 0)), self.context([cancelled]))

        self.assertTrue(result.available)
        self.assertEqual(result.conflicting_appointments, [])

    def test_excluded_appointment_is_ignored(self):
        existing = booking((10, 0), (11, 0))
        context = self.context([existing], exclude_appointment_id=existing.id)

        self.assertTrue(check_availability(slot((10, 30), (11, 30)), context).available)

    def test_owner_scope(self):
        other_owner = booking((10, 0), (11, 0), owner_id="owner-2", resources={"room-a"})

        own_scope = self.context([other_owner], owner_id="owner-1")
        self.assertTrue(check_availability(slot((10, 0), (11, 0)), own_scope).available)

        resource_scope = self.context(
            [other_owner], owner_id="owner-1", resources=frozenset({"room-a"})
        )
        self.assertFalse(check_availability(slot((10, 0), (11, 0)), resource_scope).available)

    def test_blocked_range(self):
        lunch = BlockedInterval(slot((12, 0), (13, 0)), reason="Lunch")
        self.rule = make_rule(blocked=[lunch])

        result = check_availability(slot((12, 30), (13, 30)), self.context())

        self.assertFalse(result.available)
        self.assertEqual(result.reason, BLOCKED)
        self.assertEqual(result.blocked_ranges, [lunch])

    def test_booked_and_blocked_reports_both(self):
        lunch = BlockedInterval(slot((12, 0), (13, 0)), reason="Lunch")
        self.rule = make_rule(blocked=[lunch])
        existing = booking((11, 30), (12, 30))

        result = check_availability(slot((12, 0), (12, 30)), self.context([existing]))

        self.assertEqual(result.reason, BOOKED)
        self.assertEqual(result.conflicting_appointments, [existing])
        self.assertEqual(result.blocked_ranges, [lunch])

    def test_result_to_dict(self):
        existing = booking((10, 0), (11, 0))
        data = check_availability(slot((10, 0), (11, 0)), self.context([existing])).to_dict()

        self.assertFalse(data["available"])
        self.assertEqual(data["conflicting_appointments"], [existing.id])
