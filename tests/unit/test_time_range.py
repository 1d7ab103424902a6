# tests/unit/test_time_range.py
from datetime import date, datetime, time, timedelta

from django.test import SimpleTestCase

from algorithms.availability.time_range import (
    DateRange,
    TimeInterval,
    TimeOfDayRange,
    duration_minutes,
    nearest_gap_after,
    nearest_gap_before,
    overlap_duration,
    overlaps,
)
from core.exceptions import ValidationException

DAY = date(2030, 1, 7)


def at(hour, minute=0, day=DAY):
    return datetime.combine(day, time(hour, minute))


def interval(start, end):
    return TimeInterval(at(*start), at(*end))


class TimeIntervalTest(SimpleTestCase):
    """Test cases for half-open interval arithmetic"""

    def test_end_must_follow_start(self):
        with self.assertRaises(ValidationException) as ctx:
            TimeInterval(at(10), at(10))
        self.assertEqual(ctx.exception.reason, "invalid_interval")

        with self.assertRaises(ValidationException):
            TimeInterval(at(11), at(10))

    def test_overlap_is_symmetric(self):
        pairs = [
            (interval((9, 0), (10, 0)), interval((9, 30), (11, 0))),
            (interval((9, 0), (12, 0)), interval((10, 0), (11, 0))),
            (interval((9, 0), (10, 0)), interval((13, 0), (14, 0))),
            (interval((9, 0), (10, 0)), interval((10, 0), (11, 0))),
        ]
        for a, b in pairs:
            self.assertEqual(overlaps(a, b), overlaps(b, a))

    def test_adjacent_intervals_do_not_overlap(self):
        a = interval((9, 0), (10, 0))
        b = interval((10, 0), (11, 0))

        self.assertFalse(overlaps(a, b))
        self.assertFalse(a.overlaps(b))
        self.assertEqual(overlap_duration(a, b), timedelta(0))

    def test_overlap_duration(self):
        a = interval((10, 0), (11, 0))
        b = interval((10, 30), (11, 30))
        self.assertEqual(overlap_duration(a, b), timedelta(minutes=30))

        inner = interval((10, 15), (10, 45))
        self.assertEqual(overlap_duration(a, inner), timedelta(minutes=30))

        far = interval((15, 0), (16, 0))
        self.assertEqual(overlap_duration(a, far), timedelta(0))

    def test_duration_minutes(self):
        self.assertEqual(duration_minutes(interval((9, 0), (10, 45))), 105)

    def test_contains(self):
        window = interval((9, 0), (17, 0))

        self.assertTrue(window.contains(at(9)))
        self.assertFalse(window.contains(at(17)))
        self.assertTrue(window.contains_range(interval((16, 30), (17, 0))))
        self.assertFalse(window.contains_range(interval((16, 45), (17, 15))))

    def test_spans_single_day(self):
        self.assertTrue(interval((9, 0), (17, 0)).spans_single_day())
        self.assertTrue(TimeInterval(at(23), at(0, day=DAY + timedelta(days=1))).spans_single_day())
        self.assertFalse(
            TimeInterval(at(23), at(1, day=DAY + timedelta(days=1))).spans_single_day()
        )

    def test_shifted_to_keeps_duration(self):
        moved = interval((10, 0), (10, 45)).shifted_to(at(14))
        self.assertEqual(moved, interval((14, 0), (14, 45)))

    def test_dict_round_trip(self):
        original = interval((10, 0), (11, 0))
        self.assertEqual(TimeInterval.from_dict(original.to_dict()), original)

    def test_nearest_gaps(self):
        slot = interval((11, 0), (11, 30))
        bookings = [interval((9, 0), (10, 0)), interval((10, 0), (10, 45)), interval((12, 0), (13, 0))]

        self.assertEqual(nearest_gap_before(slot, bookings), timedelta(minutes=15))
        self.assertEqual(nearest_gap_after(slot, bookings), timedelta(minutes=30))
        self.assertIsNone(nearest_gap_before(slot, []))
        self.assertIsNone(nearest_gap_after(interval((14, 0), (15, 0)), bookings))


class TimeOfDayRangeTest(SimpleTestCase):
    def test_parse_and_anchor(self):
        hours = TimeOfDayRange.parse("09:00", "17:00")
        self.assertEqual(hours.on(DAY), interval((9, 0), (17, 0)))

    def test_contains_interval_uses_wall_clock(self):
        morning = TimeOfDayRange.parse("08:00", "12:00")

        self.assertTrue(morning.contains_interval(interval((9, 0), (10, 0))))
        self.assertTrue(morning.contains_interval(interval((11, 0), (12, 0))))
        self.assertFalse(morning.contains_interval(interval((11, 30), (12, 30))))

    def test_invalid_range(self):
        with self.assertRaises(ValidationException):
            TimeOfDayRange.parse("17:00", "09:00")


class DateRangeTest(SimpleTestCase):
    def test_days_are_inclusive(self):
        days = list(DateRange(DAY, DAY + timedelta(days=2)).days())
        self.assertEqual(days, [DAY, DAY + timedelta(days=1), DAY + timedelta(days=2)])

    def test_covering_interval(self):
        overnight = TimeInterval(at(22), at(2, day=DAY + timedelta(days=1)))
        self.assertEqual(DateRange.covering(overnight), DateRange(DAY, DAY + timedelta(days=1)))
        self.assertEqual(DateRange.covering(interval((9, 0), (10, 0))), DateRange(DAY, DAY))

    def test_as_interval(self):
        window = DateRange(DAY, DAY).as_interval()
        self.assertEqual(window.start, at(0))
        self.assertEqual(window.end, at(0, day=DAY + timedelta(days=1)))

    def test_end_before_start(self):
        with self.assertRaises(ValidationException):
            DateRange(DAY, DAY - timedelta(days=1))
