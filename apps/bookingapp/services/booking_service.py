"""
Booking Service Module for SlotKeeper

This module composes the scheduling algorithms with the durable store and the
external collaborators. It owns the whole booking lifecycle: validation,
availability, conflict detection and resolution, commit under distributed
locks, reminders, calendar sync and notifications.
"""

import logging
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from django.utils import timezone

from algorithms.availability.availability_checker import (
    BOOKED,
    OUTSIDE_BUSINESS_HOURS,
    AvailabilityContext,
    AvailabilityResult,
    check_availability,
)
from algorithms.availability.conflict_detector import Conflict, ConflictDetector
from algorithms.availability.conflict_resolver import (
    ConflictResolver,
    ResolutionOutcome,
    ResolutionRecord,
    ResourcePools,
)
from algorithms.availability.slot_suggester import (
    ScoredSlot,
    SlotRequirements,
    SlotSuggester,
    context_at,
)
from algorithms.availability.time_range import (
    DateRange,
    TimeInterval,
    TimeOfDayRange,
    duration_minutes,
)
from apps.bookingapp.conf import get_scheduling_settings
from apps.bookingapp.domain import (
    Appointment,
    AppointmentStatus,
    ReminderSpec,
    ScheduledReminder,
)
from apps.bookingapp.services.collaborators import load_collaborator
from apps.bookingapp.services.reminder_service import ReminderScheduler
from apps.bookingapp.services.store import bounded_store
from core.exceptions import (
    ExternalServiceException,
    InvalidOperationException,
    NoAvailabilityException,
    SchedulingConflictException,
    ValidationException,
)
from utils.distributed_locks import distributed_lock
from utils.timeouts import call_with_timeout

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class BookingRequest:
    """
    Everything needed to book one appointment.

    ``auto_reschedule`` lets the engine move the request to the next free slot
    when the owner is already booked at the requested time.
    """

    owner_id: str
    interval: TimeInterval
    title: str = ""
    description: str = ""
    resources: Iterable[str] = ()
    participants: Sequence[str] = ()
    required_participants: Iterable[str] = ()
    reminder_specs: Optional[List[ReminderSpec]] = None
    auto_reschedule: bool = False
    preferred_time_ranges: Sequence[TimeOfDayRange] = ()
    urgency: str = "normal"


@dataclass
class BookingResult:
    booked: bool
    appointment: Optional[Appointment] = None
    reminders: List[ScheduledReminder] = field(default_factory=list)
    resolution: Optional[ResolutionRecord] = None
    sync_warnings: List[str] = field(default_factory=list)
    confirmation: Dict[str, Any] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        """Committed, but at least one collaborator failed."""
        return bool(self.sync_warnings)

    def to_dict(self):
        return {
            "booked": self.booked,
            "appointment": self.appointment.to_dict() if self.appointment else None,
            "reminders": [reminder.to_dict() for reminder in self.reminders],
            "resolution": self.resolution.to_dict() if self.resolution else None,
            "sync_warnings": list(self.sync_warnings),
            "confirmation": dict(self.confirmation),
        }


class BookingService:
    """
    Service for managing the booking process with concurrency control.

    This service handles:
    - Availability checks and slot suggestions (read-only, lock-free)
    - Booking, rescheduling, cancellation and completion
    - Reminder scheduling and firing
    - Calendar sync and confirmation notifications

    Every mutation runs check -> detect -> resolve -> commit while holding the
    distributed locks of its contention domain (the owner plus each resource).
    Collaborator failures after commit never roll the booking back; they are
    reported as ``sync_warnings``.
    """

    def __init__(
        self,
        store,
        rule_provider,
        dispatcher,
        calendar,
        resource_pools: Optional[ResourcePools] = None,
        config: Optional[Dict[str, Any]] = None,
        clock=None,
    ):
        self.rule_provider = rule_provider
        self.dispatcher = dispatcher
        self.calendar = calendar
        self.config = {**get_scheduling_settings(), **(config or {})}
        self.resource_pools = resource_pools or ResourcePools(self.config["RESOURCE_POOLS"])
        self.clock = clock or timezone.now

        self.detector = ConflictDetector()
        self.suggester = SlotSuggester()
        self.granularity = timedelta(minutes=self.config["SLOT_GRANULARITY_MINUTES"])
        self.collaborator_timeout = self.config["COLLABORATOR_TIMEOUT_SECONDS"]
        self.store = bounded_store(store, self.collaborator_timeout)
        self.reminders = ReminderScheduler(
            self.store, dispatcher, timeout=self.collaborator_timeout
        )

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def check_availability(
        self,
        owner_id: str,
        interval: TimeInterval,
        exclude_appointment_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """Availability verdict for ``interval`` against a fresh snapshot."""
        provider = self._context_provider(owner_id, exclude_appointment_id)
        return check_availability(interval, context_at(provider, interval.start))

    def detect_conflicts(self, candidate: Appointment) -> List[Conflict]:
        provider = self._context_provider(candidate.owner_id, candidate.id)
        context = context_at(provider, candidate.interval.start)
        return self.detector.detect_conflicts(candidate, context.appointments)

    def suggest_slots(
        self,
        owner_id: str,
        date_range: DateRange,
        duration: timedelta,
        granularity: Optional[timedelta] = None,
        not_before: Optional[datetime] = None,
    ) -> List[TimeInterval]:
        return self.suggester.suggest_slots(
            date_range,
            duration,
            self._context_provider(owner_id),
            granularity or self.granularity,
            not_before=not_before,
        )

    def rank_suggestions(
        self, slots: Sequence[TimeInterval], requirements: SlotRequirements
    ) -> List[ScoredSlot]:
        return self.suggester.rank_suggestions(slots, requirements)

    def suggest_alternatives(
        self,
        request: BookingRequest,
        exclude_appointment_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ScoredSlot]:
        """
        Ranked slots of the requested duration near the requested day.

        Searches ``ALTERNATIVE_SEARCH_DAYS`` days starting with the requested
        one and never proposes a slot in the past.
        """
        now = self.clock()
        limit = limit or self.config["MAX_ALTERNATIVES"]
        search_days = self.config["ALTERNATIVE_SEARCH_DAYS"]

        provider = self._context_provider(request.owner_id, exclude_appointment_id)
        first_day = context_at(provider, request.interval.start).rule.local_day(
            request.interval.start
        )
        date_range = DateRange(first_day, first_day + timedelta(days=search_days - 1))

        slots = self.suggester.suggest_slots(
            date_range,
            request.interval.duration,
            provider,
            self.granularity,
            not_before=now,
        )

        appointments = {}
        for day in date_range.days():
            for appointment in provider(day).appointments:
                if appointment.id != exclude_appointment_id:
                    appointments[appointment.id] = appointment

        participant_busy = {
            participant: [
                a.interval for a in appointments.values() if participant in a.participants
            ]
            for participant in request.participants
        }
        requirements = SlotRequirements(
            preferred_time_ranges=request.preferred_time_ranges,
            participant_ids=list(request.participants),
            participant_busy=participant_busy,
            existing_bookings=[
                a.interval for a in appointments.values() if a.owner_id == request.owner_id
            ],
            urgency=request.urgency,
        )
        return self.suggester.rank_suggestions(slots, requirements)[:limit]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def book(self, request: BookingRequest) -> BookingResult:
        """
        Book an appointment.

        Raises:
            ValidationException: Malformed request, past start, duration out
                of bounds, multi-day span or outside business hours
            NoAvailabilityException: Slot occupied or blocked; carries ranked
                alternatives
            SchedulingConflictException: Conflicts no single strategy clears
            ServiceUnavailableException: Commit lock not acquired in time
            ExternalServiceException: The store rejected the commit write
        """
        now = self.clock()
        candidate = Appointment(
            owner_id=request.owner_id,
            interval=request.interval,
            title=request.title,
            description=request.description,
            resources=request.resources,
            participants=request.participants,
            required_participants=request.required_participants,
            reminder_specs=request.reminder_specs,
            created_at=now,
            updated_at=now,
        )
        self._validate(candidate.owner_id, candidate.interval, now)

        with ExitStack() as locks:
            locks.enter_context(self._lock(self._lock_keys(candidate)))

            outcome = self._run_pipeline(candidate, request, now)
            committed = outcome.candidate
            self._relock_for_substitutes(locks, candidate, committed)

            committed.transition_to(AppointmentStatus.CONFIRMED, at=now)
            self.store.save(committed)

        logger.info(
            f"Booked appointment {committed.id} for owner {committed.owner_id} "
            f"at {committed.interval}"
        )
        return self._after_commit(committed, outcome.record, now)

    def reschedule(
        self, appointment_id: str, new_interval: TimeInterval, auto_reschedule: bool = False
    ) -> BookingResult:
        """
        Move a confirmed appointment.

        The full pipeline runs on a copy; on any failure the stored appointment
        keeps its interval and version.
        """
        now = self.clock()
        original = self.store.load(appointment_id)
        if not original.can_transition_to(AppointmentStatus.CONFIRMED):
            raise InvalidOperationException(
                f"Cannot reschedule an appointment with status {original.status.value}"
            )
        self._validate(original.owner_id, new_interval, now)

        with ExitStack() as locks:
            locks.enter_context(self._lock(self._lock_keys(original)))

            current = self.store.load(appointment_id)
            candidate = current.copy()
            candidate.interval = new_interval
            candidate.conflict_resolution = None

            request = BookingRequest(
                owner_id=candidate.owner_id,
                interval=new_interval,
                participants=candidate.participants,
                auto_reschedule=auto_reschedule,
            )
            outcome = self._run_pipeline(candidate, request, now)
            committed = outcome.candidate
            self._relock_for_substitutes(locks, current, committed)

            committed.transition_to(AppointmentStatus.CONFIRMED, at=now)
            self.store.save(committed)

        logger.info(
            f"Rescheduled appointment {committed.id} from {current.interval} "
            f"to {committed.interval}"
        )
        return self._after_commit(committed, outcome.record, now, replace_reminders=True)

    def cancel(self, appointment_id: str, reason: str = "") -> BookingResult:
        """Cancel a confirmed appointment and every pending reminder."""
        now = self.clock()
        original = self.store.load(appointment_id)

        with self._lock(self._lock_keys(original)):
            appointment = self.store.load(appointment_id)
            appointment.transition_to(AppointmentStatus.CANCELLED, at=now)
            appointment.cancellation_reason = reason
            self.store.save(appointment)

        logger.info(f"Cancelled appointment {appointment.id}: {reason or 'no reason'}")

        warnings = []
        cancelled = self._isolated(
            "reminders", lambda: self.reminders.cancel_all(appointment.id), warnings
        )
        self._isolated(
            "calendar",
            lambda: self._sync_calendar(self.calendar.remove, appointment),
            warnings,
        )

        return BookingResult(
            booked=False,
            appointment=appointment,
            sync_warnings=warnings,
            confirmation={
                "appointment_id": appointment.id,
                "status": appointment.status.value,
                "reminders_cancelled": cancelled or 0,
                "message": f"Your appointment {appointment.title} has been cancelled.",
            },
        )

    def complete(self, appointment_id: str) -> BookingResult:
        now = self.clock()
        original = self.store.load(appointment_id)

        with self._lock(self._lock_keys(original)):
            appointment = self.store.load(appointment_id)
            appointment.transition_to(AppointmentStatus.COMPLETED, at=now)
            self.store.save(appointment)

        logger.info(f"Completed appointment {appointment.id}")

        warnings = []
        self._isolated(
            "reminders", lambda: self.reminders.cancel_all(appointment.id), warnings
        )
        return BookingResult(
            booked=False,
            appointment=appointment,
            sync_warnings=warnings,
            confirmation={
                "appointment_id": appointment.id,
                "status": appointment.status.value,
            },
        )

    def fire_due_reminders(self, now: Optional[datetime] = None) -> List[ScheduledReminder]:
        return self.reminders.fire_due(now or self.clock())

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _validate(self, owner_id: str, interval: TimeInterval, now: datetime):
        """Reject malformed requests before touching any state."""
        if interval.start < now:
            raise ValidationException(
                f"Cannot book in the past ({interval.start.isoformat()})",
                reason="past_start",
            )

        minutes = duration_minutes(interval)
        min_minutes = self.config["MIN_DURATION_MINUTES"]
        max_minutes = self.config["MAX_DURATION_MINUTES"]
        if not min_minutes <= minutes <= max_minutes:
            raise ValidationException(
                f"Duration must be between {min_minutes} and {max_minutes} minutes, "
                f"got {minutes}",
                reason="duration_out_of_bounds",
            )

        rule = self.rule_provider.get_rule(owner_id, interval.start.date())
        local = interval
        if rule.tzinfo is not None and interval.start.tzinfo is not None:
            local = TimeInterval(
                interval.start.astimezone(rule.tzinfo), interval.end.astimezone(rule.tzinfo)
            )
        if not local.spans_single_day():
            raise ValidationException(
                "Appointments must start and end on the same day", reason="multi_day_span"
            )

        window = rule.window_containing(interval.start)
        if window is None or not window.contains_range(interval):
            raise ValidationException(
                f"{interval} is outside business hours ({window or 'closed'})",
                reason=OUTSIDE_BUSINESS_HOURS,
            )

    def _run_pipeline(
        self, candidate: Appointment, request: BookingRequest, now: datetime
    ) -> ResolutionOutcome:
        provider = self._context_provider(candidate.owner_id, candidate.id)
        context = context_at(provider, candidate.interval.start)

        availability = check_availability(candidate.interval, context)
        if not availability.available:
            if availability.reason == OUTSIDE_BUSINESS_HOURS:
                raise ValidationException(
                    f"{candidate.interval} is outside business hours",
                    reason=OUTSIDE_BUSINESS_HOURS,
                )

            only_own_bookings = (
                availability.reason == BOOKED and not availability.blocked_ranges
            )
            if not (request.auto_reschedule and only_own_bookings):
                raise NoAvailabilityException(
                    f"{candidate.interval} is not available ({availability.reason})",
                    reason=availability.reason,
                    alternatives=self.suggest_alternatives(request, candidate.id),
                )

        conflicts = self.detector.detect_conflicts(candidate, context.appointments)
        if not conflicts:
            return ResolutionOutcome(resolved=True, candidate=candidate)

        resolver = ConflictResolver(
            provider,
            resource_pools=self.resource_pools,
            suggester=self.suggester,
            detector=self.detector,
            granularity=self.granularity,
            search_days=self.config["RESCHEDULE_SEARCH_DAYS"],
            not_before=now,
        )
        outcome = resolver.resolve(candidate, conflicts, now=now)
        if not outcome.resolved:
            raise SchedulingConflictException(
                f"{len(conflicts)} conflict(s) for {candidate.interval} could not be resolved",
                conflicts=conflicts,
                alternatives=outcome.alternatives,
            )
        return outcome

    def _relock_for_substitutes(self, locks: ExitStack, before, after):
        """
        Widen the held locks when resolution substituted resources.

        Every lock is released and the full key set is taken again in one
        sorted acquisition, then ``after`` is re-validated against a fresh
        snapshot.
        """
        added = set(after.resources) - set(before.resources)
        if not added:
            return

        keys = self._lock_keys(before) + [f"resource:{r}" for r in sorted(added)]
        locks.close()
        locks.enter_context(self._lock(keys))

        provider = self._context_provider(after.owner_id, after.id)
        context = context_at(provider, after.interval.start)
        availability = check_availability(after.interval, context)
        remaining = self.detector.detect_conflicts(after, context.appointments)
        if remaining or not availability.available:
            raise SchedulingConflictException(
                f"{after.interval} was taken while substituted resources were locked",
                conflicts=remaining,
            )

    def _after_commit(
        self, appointment, resolution, now, replace_reminders=False
    ) -> BookingResult:
        """Side effects of a commit; failures become warnings."""
        warnings = []

        # Old reminders that survive a failed cancel are dropped at fire time
        # because they carry the previous version.
        if replace_reminders:
            self._isolated(
                "reminders", lambda: self.reminders.cancel_all(appointment.id), warnings
            )

        reminders = self._isolated(
            "reminders",
            lambda: self.reminders.schedule(appointment, now=now),
            warnings,
        )
        self._isolated(
            "calendar",
            lambda: self._sync_calendar(self.calendar.push, appointment),
            warnings,
        )

        confirmation = self._confirmation(appointment, resolution)
        self._isolated(
            "notifications",
            lambda: call_with_timeout(
                self.dispatcher.dispatch,
                "email",
                confirmation,
                timeout=self.collaborator_timeout,
                collaborator="notifications:email",
            ),
            warnings,
        )

        if warnings:
            logger.warning(
                f"Appointment {appointment.id} committed with {len(warnings)} warning(s)"
            )

        return BookingResult(
            booked=True,
            appointment=appointment,
            reminders=reminders or [],
            resolution=resolution,
            sync_warnings=warnings,
            confirmation=confirmation,
        )

    def _sync_calendar(self, operation, appointment):
        result = call_with_timeout(
            operation,
            appointment,
            timeout=self.collaborator_timeout,
            collaborator="calendar",
        )
        if not result.success:
            raise ExternalServiceException(
                result.message or "Calendar sync failed", collaborator="calendar"
            )
        return result

    def _isolated(self, name, func, warnings):
        try:
            return func()
        except ExternalServiceException as e:
            warnings.append(f"{name}: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected {name} failure: {e}")
            warnings.append(f"{name}: {e}")
        return None

    def _confirmation(self, appointment, resolution):
        start = appointment.interval.start
        message = (
            f"Your appointment {appointment.title} has been confirmed for "
            f"{start.strftime('%A, %B %d')} at {start.strftime('%I:%M %p')}."
        )
        if resolution is not None:
            message += f" Adjusted: {resolution.strategy.description}."

        return {
            "appointment_id": appointment.id,
            "title": appointment.title,
            "start_time": start.isoformat(),
            "end_time": appointment.interval.end.isoformat(),
            "status": appointment.status.value,
            "subject": f"Appointment confirmed: {appointment.title}",
            "message": message,
            "recipients": list(appointment.participants),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _context_provider(self, owner_id, exclude_appointment_id=None):
        """
        Per-day availability snapshots for one operation.

        Each day's rule and appointment list is read once and cached for the
        lifetime of the returned provider.
        """
        cache = {}

        def provider(day):
            if day not in cache:
                rule = self.rule_provider.get_rule(owner_id, day)
                appointments = self.store.list_active(
                    None, DateRange(day, day), tzinfo=rule.tzinfo
                )
                cache[day] = AvailabilityContext(
                    rule=rule,
                    appointments=appointments,
                    owner_id=owner_id,
                    exclude_appointment_id=exclude_appointment_id,
                )
            return cache[day]

        return provider

    def _lock_keys(self, appointment):
        return [f"owner:{appointment.owner_id}"] + [
            f"resource:{resource}" for resource in sorted(appointment.resources)
        ]

    def _lock(self, keys):
        return distributed_lock(
            keys,
            expires=self.config["LOCK_EXPIRES_SECONDS"],
            timeout=self.config["LOCK_TIMEOUT_SECONDS"],
        )


_engine = None
_engine_lock = threading.Lock()


def build_booking_engine(config: Optional[Dict[str, Any]] = None) -> BookingService:
    """Assemble a BookingService from the ``SCHEDULING`` settings."""
    config = {**get_scheduling_settings(), **(config or {})}
    engine = BookingService(
        store=load_collaborator(config["STORE_BACKEND"]),
        rule_provider=load_collaborator(config["AVAILABILITY_RULE_PROVIDER"]),
        dispatcher=load_collaborator(config["NOTIFICATION_DISPATCHER"]),
        calendar=load_collaborator(config["CALENDAR_SYNC_PROVIDER"]),
        config=config,
    )
    engine.reminders.restore()
    return engine


def get_booking_engine() -> BookingService:
    """Process-wide engine, built lazily on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = build_booking_engine()
            logger.info("Booking engine initialised")
        return _engine


def reset_booking_engine():
    global _engine
    with _engine_lock:
        _engine = None
