"""
Multi-dimensional conflict detection algorithm.

This module detects scheduling conflicts between a candidate appointment and
existing commitments across three independent dimensions: owner time overlap,
shared resources and shared participants.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .time_range import overlap_duration, overlaps

logger = logging.getLogger(__name__)


class ConflictKind(str, Enum):
    TIME_OVERLAP = "time_overlap"
    RESOURCE_CONFLICT = "resource_conflict"
    PARTICIPANT_CONFLICT = "participant_conflict"


@dataclass(frozen=True)
class Conflict:
    """A single clash between the candidate and one existing appointment."""

    kind: ConflictKind
    against: str
    overlap_duration: timedelta
    resource: Optional[str] = None
    participant: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "against": self.against,
            "overlap_minutes": int(self.overlap_duration.total_seconds() // 60),
            "resource": self.resource,
            "participant": self.participant,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conflict":
        return cls(
            kind=ConflictKind(data["kind"]),
            against=data["against"],
            overlap_duration=timedelta(minutes=data.get("overlap_minutes", 0)),
            resource=data.get("resource"),
            participant=data.get("participant"),
        )


class ConflictDetector:
    """
    Conflict detection across owner, resource and participant dimensions.

    All three checks run unconditionally, so a single candidate can produce
    conflicts of several kinds at once. Results are concatenated in check order
    and never deduplicated: one existing appointment sharing two resources
    yields two resource conflicts.
    """

    def detect_conflicts(self, candidate, existing: Iterable[Any]) -> List[Conflict]:
        """
        Enumerate every conflict between ``candidate`` and ``existing``.

        Args:
            candidate: The appointment being booked or moved
            existing: Committed appointments to check against (any owner)

        Returns:
            List of Conflict objects
        """
        others = [
            appointment
            for appointment in existing
            if appointment.is_active
            and appointment.id != candidate.id
            and overlaps(candidate.interval, appointment.interval)
        ]

        conflicts = []
        conflicts.extend(self._time_overlaps(candidate, others))
        conflicts.extend(self._resource_conflicts(candidate, others))
        conflicts.extend(self._participant_conflicts(candidate, others))

        if conflicts:
            logger.debug(
                f"Detected {len(conflicts)} conflict(s) for appointment {candidate.id}"
            )
        return conflicts

    def _time_overlaps(self, candidate, others) -> List[Conflict]:
        return [
            Conflict(
                kind=ConflictKind.TIME_OVERLAP,
                against=appointment.id,
                overlap_duration=overlap_duration(candidate.interval, appointment.interval),
            )
            for appointment in others
            if appointment.owner_id == candidate.owner_id
        ]

    def _resource_conflicts(self, candidate, others) -> List[Conflict]:
        if not candidate.resources:
            return []

        conflicts = []
        for appointment in others:
            shared = set(candidate.resources) & set(appointment.resources)
            for resource in sorted(shared):
                conflicts.append(
                    Conflict(
                        kind=ConflictKind.RESOURCE_CONFLICT,
                        against=appointment.id,
                        overlap_duration=overlap_duration(
                            candidate.interval, appointment.interval
                        ),
                        resource=resource,
                    )
                )
        return conflicts

    def _participant_conflicts(self, candidate, others) -> List[Conflict]:
        if not candidate.participants:
            return []

        conflicts = []
        for appointment in others:
            shared = set(candidate.participants) & set(appointment.participants)
            for participant in sorted(shared):
                conflicts.append(
                    Conflict(
                        kind=ConflictKind.PARTICIPANT_CONFLICT,
                        against=appointment.id,
                        overlap_duration=overlap_duration(
                            candidate.interval, appointment.interval
                        ),
                        participant=participant,
                    )
                )
        return conflicts


def detect_conflicts(candidate, existing: Iterable[Any]) -> List[Conflict]:
    return ConflictDetector().detect_conflicts(candidate, existing)
