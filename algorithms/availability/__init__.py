"""
Availability calculation algorithms.

This package contains the pure scheduling algorithms used by the booking
engine. Nothing here touches the database; callers supply snapshots.

Key components:
- TimeInterval: Half-open interval arithmetic
- check_availability: Business hours, existing bookings and blocked ranges
- ConflictDetector: Detects scheduling conflicts across multiple dimensions
- ConflictResolver: Scores and applies resolution strategies
- SlotSuggester: Generates and ranks alternative slots
"""

from .availability_checker import (
    AvailabilityContext,
    AvailabilityResult,
    AvailabilityRule,
    BlockedInterval,
    check_availability,
)
from .conflict_detector import Conflict, ConflictDetector, ConflictKind, detect_conflicts
from .conflict_resolver import (
    ConflictResolver,
    ResolutionOutcome,
    ResolutionRecord,
    ResolutionStrategy,
    ResourcePools,
    StrategyKind,
)
from .slot_suggester import ScoredSlot, SlotRequirements, SlotSuggester
from .time_range import DateRange, TimeInterval, TimeOfDayRange, overlap_duration, overlaps

__all__ = [
    "AvailabilityContext",
    "AvailabilityResult",
    "AvailabilityRule",
    "BlockedInterval",
    "check_availability",
    "Conflict",
    "ConflictDetector",
    "ConflictKind",
    "detect_conflicts",
    "ConflictResolver",
    "ResolutionOutcome",
    "ResolutionRecord",
    "ResolutionStrategy",
    "ResourcePools",
    "StrategyKind",
    "ScoredSlot",
    "SlotRequirements",
    "SlotSuggester",
    "DateRange",
    "TimeInterval",
    "TimeOfDayRange",
    "overlap_duration",
    "overlaps",
]
