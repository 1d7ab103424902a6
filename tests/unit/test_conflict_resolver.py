# tests/unit/test_conflict_resolver.py
from django.test import SimpleTestCase

from algorithms.availability.availability_checker import BlockedInterval
from algorithms.availability.conflict_detector import detect_conflicts
from algorithms.availability.conflict_resolver import (
    ConflictResolver,
    ResolutionRecord,
    ResourcePools,
    StrategyKind,
)
from apps.bookingapp.domain import AppointmentStatus

from .helpers import at, booking, make_rule, provider_for, slot


class ResourcePoolsTest(SimpleTestCase):
    def test_equivalents(self):
        pools = ResourcePools({"rooms": ["room-a", "room-b", "room-c"], "beamers": ["beamer-1"]})

        self.assertEqual(pools.equivalents("room-b"), ["room-a", "room-c"])
        self.assertEqual(pools.equivalents("beamer-1"), [])
        self.assertEqual(pools.equivalents("unknown"), [])


class ConflictResolverTest(SimpleTestCase):
    """Test cases for strategy generation, scoring and selection"""

    def resolve(self, candidate, existing, pools=None, rule=None):
        resolver = ConflictResolver(
            provider_for(existing, rule=rule), resource_pools=ResourcePools(pools or {})
        )
        return resolver.resolve(candidate, detect_conflicts(candidate, existing), now=at(8))

    def test_overlap_is_rescheduled_to_next_free_slot(self):
        existing = booking((10, 0), (11, 0))
        candidate = booking((10, 30), (11, 30), status=AppointmentStatus.PENDING)

        outcome = self.resolve(candidate, [existing])

        self.assertTrue(outcome.resolved)
        self.assertEqual(outcome.applied_strategy.kind, StrategyKind.RESCHEDULE)
        self.assertEqual(outcome.candidate.interval, slot((11, 0), (12, 0)))
        self.assertAlmostEqual(outcome.applied_strategy.score, 100 / 1.5)

    def test_original_candidate_is_untouched(self):
        existing = booking((10, 0), (11, 0))
        candidate = booking((10, 30), (11, 30), status=AppointmentStatus.PENDING)

        outcome = self.resolve(candidate, [existing])

        self.assertEqual(candidate.interval, slot((10, 30), (11, 30)))
        self.assertIsNone(candidate.conflict_resolution)
        self.assertIsNot(outcome.candidate, candidate)

    def test_resolution_record(self):
        existing = booking((10, 0), (11, 0))
        candidate = booking((10, 30), (11, 30), status=AppointmentStatus.PENDING)

        outcome = self.resolve(candidate, [existing])
        record = outcome.candidate.conflict_resolution

        self.assertIs(record, outcome.record)
        self.assertEqual(record.original_interval, slot((10, 30), (11, 30)))
        self.assertEqual(len(record.conflicts), 1)
        self.assertEqual(record.resolved_at, at(8))
        self.assertEqual(ResolutionRecord.from_dict(record.to_dict()).to_dict(), record.to_dict())

    def test_reschedule_skips_blocked_ranges(self):
        existing = booking((10, 0), (11, 0))
        candidate = booking((10, 30), (11, 30), status=AppointmentStatus.PENDING)
        rule = make_rule(blocked=[BlockedInterval(slot((11, 0), (13, 0)), "Offsite")])

        outcome = self.resolve(candidate, [existing], rule=rule)

        self.assertEqual(outcome.candidate.interval, slot((13, 0), (14, 0)))

    def test_resource_substitution(self):
        existing = booking((10, 0), (11, 0), owner_id="owner-2", resources={"room-a"})
        candidate = booking(
            (10, 0), (11, 0), status=AppointmentStatus.PENDING, resources={"room-a"}
        )

        outcome = self.resolve(candidate, [existing], pools={"rooms": ["room-a", "room-b"]})

        self.assertTrue(outcome.resolved)
        self.assertEqual(outcome.applied_strategy.kind, StrategyKind.REASSIGN_RESOURCE)
        self.assertEqual(outcome.applied_strategy.score, 90)
        self.assertEqual(outcome.candidate.resources, {"room-b"})
        self.assertEqual(outcome.candidate.interval, candidate.interval)

    def test_resource_substitution_needs_a_free_equivalent(self):
        holders = [
            booking((10, 0), (11, 0), owner_id="owner-2", resources={"room-a"}),
            booking((10, 0), (11, 0), owner_id="owner-3", resources={"room-b"}),
        ]
        candidate = booking(
            (10, 0), (11, 0), status=AppointmentStatus.PENDING, resources={"room-a"}
        )

        outcome = self.resolve(candidate, holders, pools={"rooms": ["room-a", "room-b"]})

        self.assertFalse(outcome.resolved)
        self.assertEqual(outcome.alternatives, [])
        self.assertIs(outcome.candidate, candidate)

    def test_optional_participant_is_removed(self):
        existing = booking((10, 0), (11, 0), owner_id="owner-2", participants=["carol"])
        candidate = booking(
            (10, 0),
            (11, 0),
            status=AppointmentStatus.PENDING,
            participants=["alice", "carol"],
            required_participants={"alice"},
        )

        outcome = self.resolve(candidate, [existing])

        self.assertTrue(outcome.resolved)
        self.assertEqual(outcome.applied_strategy.kind, StrategyKind.REDUCE_PARTICIPANTS)
        self.assertEqual(outcome.applied_strategy.score, 70)
        self.assertEqual(outcome.candidate.participants, ["alice"])

    def test_required_participant_cannot_be_removed(self):
        existing = booking((10, 0), (11, 0), owner_id="owner-2", participants=["carol"])
        candidate = booking(
            (10, 0),
            (11, 0),
            status=AppointmentStatus.PENDING,
            participants=["carol"],
            required_participants={"carol"},
        )

        outcome = self.resolve(candidate, [existing])

        self.assertFalse(outcome.resolved)
        self.assertEqual(outcome.alternatives, [])

    def test_partial_resolution_is_not_success(self):
        # Removing carol leaves the room clash; no pool offers a substitute.
        existing = booking(
            (10, 0), (11, 0), owner_id="owner-2", participants=["carol"], resources={"room-a"}
        )
        candidate = booking(
            (10, 0),
            (11, 0),
            status=AppointmentStatus.PENDING,
            participants=["carol"],
            resources={"room-a"},
        )

        outcome = self.resolve(candidate, [existing])

        self.assertFalse(outcome.resolved)
        self.assertEqual(
            [s.kind for s in outcome.alternatives], [StrategyKind.REDUCE_PARTICIPANTS]
        )

    def test_only_strategies_clearing_everything_are_applied(self):
        # Substitution scores higher but leaves the owner double-booked.
        existing = booking((10, 0), (11, 0), owner_id="owner-2", resources={"room-a"})
        candidate = booking(
            (10, 0), (11, 0), status=AppointmentStatus.PENDING, resources={"room-a"}
        )
        own = booking((10, 0), (10, 15))

        outcome = self.resolve(candidate, [existing, own], pools={"rooms": ["room-a", "room-b"]})

        self.assertTrue(outcome.resolved)
        self.assertEqual(outcome.applied_strategy.kind, StrategyKind.RESCHEDULE)
        self.assertEqual(outcome.candidate.interval, slot((11, 0), (12, 0)))
        self.assertEqual(
            [s.kind for s in outcome.alternatives], [StrategyKind.REASSIGN_RESOURCE]
        )

    def test_no_conflicts_is_trivially_resolved(self):
        candidate = booking((10, 0), (11, 0), status=AppointmentStatus.PENDING)
        outcome = ConflictResolver(provider_for([])).resolve(candidate, [])

        self.assertTrue(outcome.resolved)
        self.assertIs(outcome.candidate, candidate)
