"""
Slot Suggestion Algorithm

Generates candidate time slots across a date range and ranks them so callers
can present "suggested alternatives" when a request fails:

1. Walks each day's business-hours window in fixed granularity steps
2. Discards slots the availability checker rejects
3. Scores survivors on time preferences, participant availability,
   buffer time around existing bookings and urgency
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from .availability_checker import AvailabilityContext, check_availability
from .time_range import (
    DateRange,
    TimeInterval,
    TimeOfDayRange,
    nearest_gap_after,
    nearest_gap_before,
    overlaps,
)

logger = logging.getLogger(__name__)

DEFAULT_GRANULARITY = timedelta(minutes=15)

# Returns the availability snapshot to use for one calendar day
ContextProvider = Callable[[date], AvailabilityContext]


@dataclass(frozen=True)
class ScoredSlot:
    interval: TimeInterval
    score: float
    breakdown: Dict[str, float] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.interval.to_dict(), "score": self.score, "breakdown": dict(self.breakdown)}


@dataclass
class SlotRequirements:
    """
    Caller preferences used when ranking slots.

    ``participant_busy`` maps each participant to the intervals they are
    already committed to; ``existing_bookings`` are the owner's bookings used
    for the buffer-time bonus.
    """

    preferred_time_ranges: Sequence[TimeOfDayRange] = ()
    participant_ids: Sequence[str] = ()
    participant_busy: Dict[str, List[TimeInterval]] = field(default_factory=dict)
    existing_bookings: Sequence[TimeInterval] = ()
    urgency: str = "normal"
    buffer_minutes: int = 15


class SlotSuggester:
    """
    Slot enumeration and multi-criteria ranking.
    """

    BASE_SCORE = 100.0
    PREFERRED_BONUS = 20.0
    NON_PREFERRED_PENALTY = 10.0
    PARTICIPANT_WEIGHT = 20.0
    BUFFER_BONUS = 5.0
    URGENT_EARLY_BONUS = 15.0
    URGENT_LATE_PENALTY = 5.0
    URGENT_HORIZON = timedelta(hours=24)

    def enumerate_slots(
        self,
        window: TimeInterval,
        duration: timedelta,
        granularity: timedelta = DEFAULT_GRANULARITY,
    ) -> Iterator[TimeInterval]:
        """
        Walk a window in ``granularity`` steps.

        Yields every slot of ``duration`` whose end does not exceed the
        window end.
        """
        current = window.start
        while current + duration <= window.end:
            yield TimeInterval(current, current + duration)
            current += granularity

    def suggest_slots(
        self,
        date_range: DateRange,
        duration: timedelta,
        context_for_day: ContextProvider,
        granularity: timedelta = DEFAULT_GRANULARITY,
        not_before: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[TimeInterval]:
        """
        Generate the available slots in a date range.

        Args:
            date_range: Days to search
            duration: Length of every slot
            context_for_day: Supplies the availability snapshot per day
            granularity: Step between consecutive slot starts
            not_before: Optional instant before which no slot may start
            limit: Optional cap on the number of slots returned

        Returns:
            Available slots in chronological order
        """
        slots = []
        for day in date_range.days():
            context = context_for_day(day)
            window = context.rule.window_for(day, fallback_tz=_tz_of(not_before))
            if window is None:
                logger.debug(f"No business hours on {day}")
                continue

            for slot in self.enumerate_slots(window, duration, granularity):
                if not_before is not None and slot.start < not_before:
                    continue
                if not check_availability(slot, context).available:
                    continue
                slots.append(slot)
                if limit is not None and len(slots) >= limit:
                    return slots

        return slots

    def find_next_available_slot(
        self,
        after: datetime,
        duration: timedelta,
        context_for_day: ContextProvider,
        max_days: int = 14,
        granularity: timedelta = DEFAULT_GRANULARITY,
        accept: Optional[Callable[[TimeInterval], bool]] = None,
    ) -> Optional[TimeInterval]:
        """
        Find the first available slot starting at or after ``after``.

        Args:
            after: Earliest acceptable start
            duration: Length of the slot
            context_for_day: Supplies the availability snapshot per day
            max_days: Number of days to search ahead
            granularity: Step between consecutive slot starts
            accept: Optional extra predicate a slot must satisfy

        Returns:
            The first matching slot, or None if none found
        """
        search_range = DateRange(after.date(), after.date() + timedelta(days=max_days))

        for day in search_range.days():
            context = context_for_day(day)
            window = context.rule.window_for(day, fallback_tz=after.tzinfo)
            if window is None:
                continue

            for slot in self.enumerate_slots(window, duration, granularity):
                if slot.start < after:
                    continue
                if not check_availability(slot, context).available:
                    continue
                if accept is not None and not accept(slot):
                    continue
                return slot

        logger.info(f"No available {duration} slot within {max_days} days after {after}")
        return None

    def rank_suggestions(
        self, slots: Sequence[TimeInterval], requirements: SlotRequirements
    ) -> List[ScoredSlot]:
        """
        Score and order slots, highest score first.

        Ties keep chronological order (earliest start first).
        """
        if not slots:
            return []

        earliest_start = min(slot.start for slot in slots)
        scored = [self.score_slot(slot, requirements, earliest_start) for slot in slots]
        return sorted(scored, key=lambda s: (-s.score, s.interval.start))

    def score_slot(
        self,
        slot: TimeInterval,
        requirements: SlotRequirements,
        earliest_start: datetime,
    ) -> ScoredSlot:
        breakdown = {"base": self.BASE_SCORE}

        # Time preference scoring
        if requirements.preferred_time_ranges:
            in_preferred = any(
                preferred.contains_interval(slot)
                for preferred in requirements.preferred_time_ranges
            )
            breakdown["preference"] = (
                self.PREFERRED_BONUS if in_preferred else -self.NON_PREFERRED_PENALTY
            )

        # Participant availability scoring
        if requirements.participant_ids:
            free = sum(
                1
                for participant in requirements.participant_ids
                if not any(
                    overlaps(slot, busy)
                    for busy in requirements.participant_busy.get(participant, [])
                )
            )
            breakdown["participants"] = (
                self.PARTICIPANT_WEIGHT * free / len(requirements.participant_ids)
            )

        # Buffer time scoring (prefer slots with idle time around bookings)
        breakdown["buffer"] = self._buffer_score(slot, requirements)

        # Urgency adjustment
        if requirements.urgency == "high":
            is_early = slot.start < earliest_start + self.URGENT_HORIZON
            breakdown["urgency"] = (
                self.URGENT_EARLY_BONUS if is_early else -self.URGENT_LATE_PENALTY
            )

        score = max(0.0, sum(breakdown.values()))
        return ScoredSlot(interval=slot, score=score, breakdown=breakdown)

    def _buffer_score(self, slot: TimeInterval, requirements: SlotRequirements) -> float:
        bookings = list(requirements.existing_bookings)
        buffer = timedelta(minutes=requirements.buffer_minutes)
        score = 0.0

        gap_before = nearest_gap_before(slot, bookings)
        if gap_before is None or gap_before >= buffer:
            score += self.BUFFER_BONUS

        gap_after = nearest_gap_after(slot, bookings)
        if gap_after is None or gap_after >= buffer:
            score += self.BUFFER_BONUS

        return score


def context_at(context_for_day: ContextProvider, instant: datetime) -> AvailabilityContext:
    """Context for the calendar day ``instant`` falls on in the rule's time zone."""
    context = context_for_day(instant.date())
    day = context.rule.local_day(instant)
    if day == instant.date():
        return context
    return context_for_day(day)


def _tz_of(instant: Optional[datetime]):
    return instant.tzinfo if instant is not None else None


def suggest_slots(
    date_range: DateRange,
    duration: timedelta,
    context_for_day: ContextProvider,
    granularity: timedelta = DEFAULT_GRANULARITY,
) -> List[TimeInterval]:
    return SlotSuggester().suggest_slots(date_range, duration, context_for_day, granularity)


def rank_suggestions(
    slots: Sequence[TimeInterval], requirements: SlotRequirements
) -> List[ScoredSlot]:
    return SlotSuggester().rank_suggestions(slots, requirements)
