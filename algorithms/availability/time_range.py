"""
Half-open time interval primitives.

Every scheduling algorithm in this package reasons about ``[start, end)``
intervals: the start instant is inclusive, the end instant is exclusive, so two
intervals that merely touch (``a.end == b.start``) are adjacent, not
overlapping.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional

from core.exceptions import ValidationException


@dataclass(frozen=True)
class TimeInterval:
    """Represents a half-open time range with aware or naive datetimes."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationException(
                f"Interval end ({self.end.isoformat()}) must be after start "
                f"({self.start.isoformat()})",
                reason="invalid_interval",
            )

    def __str__(self) -> str:
        return f"{self.start.strftime('%Y-%m-%d %H:%M')} - {self.end.strftime('%H:%M')}"

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self, other)

    def contains(self, point: datetime) -> bool:
        """Check if this interval contains a specific instant."""
        return self.start <= point < self.end

    def contains_range(self, other: "TimeInterval") -> bool:
        """Check if this interval fully contains another interval."""
        return self.start <= other.start and self.end >= other.end

    def spans_single_day(self) -> bool:
        """
        Check if the interval stays within one calendar day.

        An interval ending exactly at the following midnight still belongs to
        its start day.
        """
        last_instant = self.end - timedelta(microseconds=1)
        return self.start.date() == last_instant.date()

    def shifted_to(self, new_start: datetime) -> "TimeInterval":
        """Return an interval of the same duration starting at ``new_start``."""
        return TimeInterval(new_start, new_start + self.duration)

    def to_dict(self):
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data) -> "TimeInterval":
        return cls(datetime.fromisoformat(data["start"]), datetime.fromisoformat(data["end"]))


@dataclass(frozen=True)
class TimeOfDayRange:
    """A wall-clock range within a single day, e.g. business hours 09:00-17:00."""

    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationException(
                f"Time range end ({self.end}) must be after start ({self.start})",
                reason="invalid_interval",
            )

    def on(self, day: date, tzinfo=None) -> TimeInterval:
        """Anchor the range to a calendar day."""
        return TimeInterval(
            datetime.combine(day, self.start, tzinfo=tzinfo),
            datetime.combine(day, self.end, tzinfo=tzinfo),
        )

    def contains_interval(self, interval: TimeInterval) -> bool:
        """Check whether an interval's wall-clock times fall inside this range."""
        if not interval.spans_single_day():
            return False
        end_time = interval.end.time()
        if end_time == time(0, 0):
            return False
        return self.start <= interval.start.time() and end_time <= self.end

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeOfDayRange":
        """Build a range from ``"HH:MM"`` strings."""
        return cls(
            datetime.strptime(start, "%H:%M").time(),
            datetime.strptime(end, "%H:%M").time(),
        )


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValidationException(
                f"Date range end ({self.end}) must not precede start ({self.start})",
                reason="invalid_interval",
            )

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def as_interval(self, tzinfo=None) -> TimeInterval:
        """Midnight of the first day up to midnight after the last day."""
        return TimeInterval(
            datetime.combine(self.start, time.min, tzinfo=tzinfo),
            datetime.combine(self.end + timedelta(days=1), time.min, tzinfo=tzinfo),
        )

    @classmethod
    def covering(cls, interval: TimeInterval) -> "DateRange":
        """Smallest date range containing every day the interval touches."""
        last_instant = interval.end - timedelta(microseconds=1)
        return cls(interval.start.date(), last_instant.date())


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """Two half-open intervals overlap iff each starts before the other ends."""
    return a.start < b.end and a.end > b.start


def overlap_duration(a: TimeInterval, b: TimeInterval) -> timedelta:
    """Length of the shared portion of two intervals, zero when disjoint."""
    overlap = min(a.end, b.end) - max(a.start, b.start)
    return max(timedelta(0), overlap)


def duration_minutes(interval: TimeInterval) -> int:
    return int(interval.duration.total_seconds() // 60)


def nearest_gap_before(
    interval: TimeInterval, others
) -> Optional[timedelta]:
    """Idle time between the latest interval ending at/before ``interval.start``."""
    ends = [other.end for other in others if other.end <= interval.start]
    if not ends:
        return None
    return interval.start - max(ends)


def nearest_gap_after(
    interval: TimeInterval, others
) -> Optional[timedelta]:
    """Idle time between ``interval.end`` and the earliest interval starting after it."""
    starts = [other.start for other in others if other.start >= interval.end]
    if not starts:
        return None
    return min(starts) - interval.end
