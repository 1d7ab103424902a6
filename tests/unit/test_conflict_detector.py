# tests/unit/test_conflict_detector.py
from datetime import timedelta

from django.test import SimpleTestCase

from algorithms.availability.conflict_detector import Conflict, ConflictKind, detect_conflicts
from apps.bookingapp.domain import AppointmentStatus

from .helpers import booking


class DetectConflictsTest(SimpleTestCase):
    """Test cases for multi-dimensional conflict detection"""

    def test_same_owner_overlap(self):
        existing = booking((10, 0), (11, 0))
        candidate = booking((10, 30), (11, 30), status=AppointmentStatus.PENDING)

        conflicts = detect_conflicts(candidate, [existing])

        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].kind, ConflictKind.TIME_OVERLAP)
        self.assertEqual(conflicts[0].against, existing.id)
        self.assertEqual(conflicts[0].overlap_duration, timedelta(minutes=30))

    def test_other_owner_without_shared_dimensions(self):
        existing = booking((10, 0), (11, 0), owner_id="owner-2")
        candidate = booking((10, 0), (11, 0), status=AppointmentStatus.PENDING)

        self.assertEqual(detect_conflicts(candidate, [existing]), [])

    def test_one_conflict_per_shared_resource(self):
        existing = booking((10, 0), (11, 0), owner_id="owner-2", resources={"room-a", "projector"})
        candidate = booking(
            (10, 0), (10, 30), status=AppointmentStatus.PENDING, resources={"room-a", "projector"}
        )

        conflicts = detect_conflicts(candidate, [existing])

        self.assertEqual([c.kind for c in conflicts], [ConflictKind.RESOURCE_CONFLICT] * 2)
        self.assertEqual([c.resource for c in conflicts], ["projector", "room-a"])

    def test_participant_conflict(self):
        existing = booking((10, 0), (11, 0), owner_id="owner-2", participants=["carol", "dave"])
        candidate = booking(
            (10, 30), (11, 0), status=AppointmentStatus.PENDING, participants=["carol"]
        )

        conflicts = detect_conflicts(candidate, [existing])

        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].kind, ConflictKind.PARTICIPANT_CONFLICT)
        self.assertEqual(conflicts[0].participant, "carol")

    def test_all_dimensions_are_reported_in_order(self):
        existing = booking((10, 0), (11, 0), resources={"room-a"}, participants=["carol"])
        candidate = booking(
            (10, 0),
            (11, 0),
            status=AppointmentStatus.PENDING,
            resources={"room-a"},
            participants=["carol"],
        )

        kinds = [c.kind for c in detect_conflicts(candidate, [existing])]

        self.assertEqual(
            kinds,
            [
                ConflictKind.TIME_OVERLAP,
                ConflictKind.RESOURCE_CONFLICT,
                ConflictKind.PARTICIPANT_CONFLICT,
            ],
        )

    def test_cancelled_appointments_never_conflict(self):
        cancelled = booking(
            (10, 0),
            (11, 0),
            status=AppointmentStatus.CANCELLED,
            resources={"room-a"},
            participants=["carol"],
        )
        candidate = booking(
            (10, 0),
            (11, 0),
            status=AppointmentStatus.PENDING,
            resources={"room-a"},
            participants=["carol"],
        )

        self.assertEqual(detect_conflicts(candidate, [cancelled]), [])

    def test_candidate_is_not_compared_with_itself(self):
        appointment = booking((10, 0), (11, 0))
        moved = appointment.copy()

        self.assertEqual(detect_conflicts(moved, [appointment]), [])

    def test_adjacent_appointments_do_not_conflict(self):
        existing = booking((9, 0), (10, 0), resources={"room-a"})
        candidate = booking((10, 0), (11, 0), status=AppointmentStatus.PENDING, resources={"room-a"})

        self.assertEqual(detect_conflicts(candidate, [existing]), [])

    def test_conflict_dict_round_trip(self):
        existing = booking((10, 0), (11, 0))
        candidate = booking((10, 30), (11, 30), status=AppointmentStatus.PENDING)
        conflict = detect_conflicts(candidate, [existing])[0]

        data = conflict.to_dict()

        self.assertEqual(data["overlap_minutes"], 30)
        self.assertEqual(Conflict.from_dict(data), conflict)
