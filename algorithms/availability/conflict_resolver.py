"""
Conflict resolution strategies.

Maps detected conflicts to candidate resolution strategies, scores them and
selects the single best strategy that clears every conflict at once:

- time_overlap -> reschedule to the next free slot of equal duration
- resource_conflict -> substitute an equivalent free resource
- participant_conflict -> drop the conflicting optional participants

Strategies are only ever applied to a copy of an uncommitted candidate.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .availability_checker import AvailabilityContext, check_availability
from .conflict_detector import Conflict, ConflictDetector, ConflictKind
from .slot_suggester import DEFAULT_GRANULARITY, ContextProvider, SlotSuggester, context_at
from .time_range import TimeInterval, overlaps

logger = logging.getLogger(__name__)


class StrategyKind(str, Enum):
    RESCHEDULE = "reschedule"
    REASSIGN_RESOURCE = "reassign_resource"
    REDUCE_PARTICIPANTS = "reduce_participants"


@dataclass
class ResolutionStrategy:
    kind: StrategyKind
    feasible: bool
    score: float = 0.0
    resulting_interval: Optional[TimeInterval] = None
    resource_substitutions: Dict[str, str] = field(default_factory=dict)
    removed_participants: Tuple[str, ...] = ()
    description: str = ""
    addresses: Tuple[Conflict, ...] = ()

    def apply(self, candidate):
        """Return a copy of ``candidate`` with this strategy applied."""
        resolved = candidate.copy()
        if self.resulting_interval is not None:
            resolved.interval = self.resulting_interval
        if self.resource_substitutions:
            resolved.resources = {
                self.resource_substitutions.get(resource, resource)
                for resource in resolved.resources
            }
        if self.removed_participants:
            removed = set(self.removed_participants)
            resolved.participants = [p for p in resolved.participants if p not in removed]
        return resolved

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "feasible": self.feasible,
            "score": self.score,
            "resulting_interval": (
                self.resulting_interval.to_dict() if self.resulting_interval else None
            ),
            "resource_substitutions": dict(self.resource_substitutions),
            "removed_participants": list(self.removed_participants),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolutionStrategy":
        interval = data.get("resulting_interval")
        return cls(
            kind=StrategyKind(data["kind"]),
            feasible=data["feasible"],
            score=data.get("score", 0.0),
            resulting_interval=TimeInterval.from_dict(interval) if interval else None,
            resource_substitutions=dict(data.get("resource_substitutions", {})),
            removed_participants=tuple(data.get("removed_participants", ())),
            description=data.get("description", ""),
        )


@dataclass
class ResolutionRecord:
    """Audit trail of a resolution applied before commit."""

    strategy: ResolutionStrategy
    conflicts: Tuple[Conflict, ...]
    original_interval: TimeInterval
    original_resources: Tuple[str, ...] = ()
    original_participants: Tuple[str, ...] = ()
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.to_dict(),
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "original_interval": self.original_interval.to_dict(),
            "original_resources": list(self.original_resources),
            "original_participants": list(self.original_participants),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolutionRecord":
        resolved_at = data.get("resolved_at")
        return cls(
            strategy=ResolutionStrategy.from_dict(data["strategy"]),
            conflicts=tuple(Conflict.from_dict(c) for c in data.get("conflicts", [])),
            original_interval=TimeInterval.from_dict(data["original_interval"]),
            original_resources=tuple(data.get("original_resources", ())),
            original_participants=tuple(data.get("original_participants", ())),
            resolved_at=datetime.fromisoformat(resolved_at) if resolved_at else None,
        )


@dataclass
class ResolutionOutcome:
    resolved: bool
    candidate: Any
    applied_strategy: Optional[ResolutionStrategy] = None
    alternatives: List[ResolutionStrategy] = field(default_factory=list)
    record: Optional[ResolutionRecord] = None


class ResourcePools:
    """
    Groups of interchangeable resources.

    Two resources are equivalent when they belong to the same pool, e.g.
    ``{"rooms": ["room-a", "room-b"]}``.
    """

    def __init__(self, pools: Optional[Mapping[str, Iterable[str]]] = None):
        self.pools = {name: list(members) for name, members in (pools or {}).items()}

    def equivalents(self, resource: str) -> List[str]:
        result = []
        for members in self.pools.values():
            if resource in members:
                result.extend(m for m in members if m != resource and m not in result)
        return result


class ConflictResolver:
    """
    Picks the highest-scoring feasible strategy that clears all conflicts.

    Partial resolution is not success: a strategy that leaves any conflict (or
    an availability failure) behind is only offered as an alternative.
    """

    RESCHEDULE_BASE_SCORE = 100.0
    RESOURCE_SUBSTITUTION_SCORE = 90.0
    PARTICIPANT_REMOVAL_BASE_SCORE = 80.0
    PARTICIPANT_REMOVAL_PENALTY = 10.0

    def __init__(
        self,
        context_for_day: ContextProvider,
        resource_pools: Optional[ResourcePools] = None,
        suggester: Optional[SlotSuggester] = None,
        detector: Optional[ConflictDetector] = None,
        granularity: timedelta = DEFAULT_GRANULARITY,
        search_days: int = 14,
        not_before: Optional[datetime] = None,
    ):
        """
        Args:
            context_for_day: Supplies the rule and every active appointment
                (all owners) for a calendar day
            resource_pools: Interchangeable resource groups
            suggester: Slot engine used for reschedule proposals
            detector: Conflict detector used to verify strategies
            granularity: Step used when searching for a reschedule slot
            search_days: How many days ahead a reschedule may move
            not_before: Earliest instant a rescheduled slot may start
        """
        self.context_for_day = context_for_day
        self.resource_pools = resource_pools or ResourcePools()
        self.suggester = suggester or SlotSuggester()
        self.detector = detector or ConflictDetector()
        self.granularity = granularity
        self.search_days = search_days
        self.not_before = not_before

    def resolve(
        self, candidate, conflicts: Sequence[Conflict], now: Optional[datetime] = None
    ) -> ResolutionOutcome:
        """
        Attempt to clear every conflict with a single strategy.

        Args:
            candidate: Uncommitted appointment
            conflicts: Output of the conflict detector for ``candidate``
            now: Timestamp recorded on the resolution record

        Returns:
            ResolutionOutcome. When resolved, ``candidate`` is the modified
            copy; otherwise it is the untouched input.
        """
        if not conflicts:
            return ResolutionOutcome(resolved=True, candidate=candidate)

        strategies = self.generate_strategies(candidate, conflicts)
        feasible = [strategy for strategy in strategies if strategy.feasible]

        clearing = [
            strategy for strategy in feasible if self._clears_all(candidate, strategy)
        ]
        if not clearing:
            logger.info(
                f"No single strategy clears {len(conflicts)} conflict(s) for "
                f"appointment {candidate.id}; {len(feasible)} feasible alternative(s)"
            )
            return ResolutionOutcome(
                resolved=False, candidate=candidate, alternatives=feasible
            )

        best = sorted(clearing, key=lambda s: -s.score)[0]
        resolved = best.apply(candidate)
        record = ResolutionRecord(
            strategy=best,
            conflicts=tuple(conflicts),
            original_interval=candidate.interval,
            original_resources=tuple(sorted(candidate.resources)),
            original_participants=tuple(candidate.participants),
            resolved_at=now,
        )
        resolved.conflict_resolution = record

        logger.info(
            f"Resolved {len(conflicts)} conflict(s) for appointment {candidate.id} "
            f"with {best.kind.value} (score {best.score:.1f})"
        )
        return ResolutionOutcome(
            resolved=True,
            candidate=resolved,
            applied_strategy=best,
            alternatives=[s for s in feasible if s is not best],
            record=record,
        )

    def generate_strategies(
        self, candidate, conflicts: Sequence[Conflict]
    ) -> List[ResolutionStrategy]:
        """One strategy per conflict kind, covering all conflicts of that kind."""
        by_kind = OrderedDict()
        for conflict in conflicts:
            by_kind.setdefault(conflict.kind, []).append(conflict)

        strategies = []
        for kind, kind_conflicts in by_kind.items():
            if kind == ConflictKind.TIME_OVERLAP:
                strategies.append(self._reschedule_strategy(candidate, kind_conflicts))
            elif kind == ConflictKind.RESOURCE_CONFLICT:
                strategies.append(self._resource_strategy(candidate, kind_conflicts))
            elif kind == ConflictKind.PARTICIPANT_CONFLICT:
                strategies.append(self._participant_strategy(candidate, kind_conflicts))
        return strategies

    def _reschedule_strategy(self, candidate, conflicts) -> ResolutionStrategy:
        after = candidate.interval.start
        if self.not_before is not None and self.not_before > after:
            after = self.not_before

        scoped = self._scoped_provider(candidate)

        def is_conflict_free(slot: TimeInterval) -> bool:
            moved = candidate.copy()
            moved.interval = slot
            return not self.detector.detect_conflicts(
                moved, context_at(scoped, slot.start).appointments
            )

        slot = self.suggester.find_next_available_slot(
            after=after,
            duration=candidate.interval.duration,
            context_for_day=scoped,
            max_days=self.search_days,
            granularity=self.granularity,
            accept=is_conflict_free,
        )

        if slot is None:
            return ResolutionStrategy(
                kind=StrategyKind.RESCHEDULE,
                feasible=False,
                description="No free slot of equal duration found",
                addresses=tuple(conflicts),
            )

        hours_moved = abs((slot.start - candidate.interval.start).total_seconds()) / 3600
        return ResolutionStrategy(
            kind=StrategyKind.RESCHEDULE,
            feasible=True,
            score=self.RESCHEDULE_BASE_SCORE / (1 + hours_moved),
            resulting_interval=slot,
            description=f"Move appointment to next available slot {slot}",
            addresses=tuple(conflicts),
        )

    def _resource_strategy(self, candidate, conflicts) -> ResolutionStrategy:
        conflicting_resources = sorted({c.resource for c in conflicts if c.resource})
        day_appointments = self._day_appointments(candidate)

        busy = set()
        for appointment in day_appointments:
            if (
                appointment.is_active
                and appointment.id != candidate.id
                and overlaps(candidate.interval, appointment.interval)
            ):
                busy.update(appointment.resources)

        substitutions = {}
        taken = set(candidate.resources)
        for resource in conflicting_resources:
            substitute = next(
                (
                    equivalent
                    for equivalent in self.resource_pools.equivalents(resource)
                    if equivalent not in busy and equivalent not in taken
                ),
                None,
            )
            if substitute is None:
                return ResolutionStrategy(
                    kind=StrategyKind.REASSIGN_RESOURCE,
                    feasible=False,
                    description=f"No free substitute for resource {resource}",
                    addresses=tuple(conflicts),
                )
            substitutions[resource] = substitute
            taken.add(substitute)

        described = ", ".join(f"{old} -> {new}" for old, new in substitutions.items())
        return ResolutionStrategy(
            kind=StrategyKind.REASSIGN_RESOURCE,
            feasible=True,
            score=self.RESOURCE_SUBSTITUTION_SCORE,
            resource_substitutions=substitutions,
            description=f"Substitute resources {described}",
            addresses=tuple(conflicts),
        )

    def _participant_strategy(self, candidate, conflicts) -> ResolutionStrategy:
        conflicting = []
        for conflict in conflicts:
            if conflict.participant and conflict.participant not in conflicting:
                conflicting.append(conflict.participant)

        required = [p for p in conflicting if p in candidate.required_participants]
        if required:
            return ResolutionStrategy(
                kind=StrategyKind.REDUCE_PARTICIPANTS,
                feasible=False,
                description=f"Required participants {', '.join(required)} are busy",
                addresses=tuple(conflicts),
            )

        score = max(
            0.0,
            self.PARTICIPANT_REMOVAL_BASE_SCORE
            - self.PARTICIPANT_REMOVAL_PENALTY * len(conflicting),
        )
        return ResolutionStrategy(
            kind=StrategyKind.REDUCE_PARTICIPANTS,
            feasible=True,
            score=score,
            removed_participants=tuple(conflicting),
            description=f"Remove optional participants {', '.join(conflicting)}",
            addresses=tuple(conflicts),
        )

    def _clears_all(self, candidate, strategy: ResolutionStrategy) -> bool:
        applied = strategy.apply(candidate)
        context = context_at(self._scoped_provider(applied), applied.interval.start)
        if not check_availability(applied.interval, context).available:
            return False
        return not self.detector.detect_conflicts(applied, context.appointments)

    def _scoped_provider(self, candidate) -> ContextProvider:
        def provider(day: date) -> AvailabilityContext:
            return replace(
                self.context_for_day(day),
                owner_id=candidate.owner_id,
                exclude_appointment_id=candidate.id,
            )

        return provider

    def _day_appointments(self, candidate):
        return context_at(self.context_for_day, candidate.interval.start).appointments
