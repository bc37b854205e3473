"""
Assignment service: commits bookings and drives their lifecycle.

Every lifecycle method runs as one unit of work: lock the booking row, check
the transition table, mutate, append exactly one timeline entry, recompute
the parent issue's status and commit. Any failure rolls the session back and
re-raises, so a refused transition leaves no trace.

Commit paths that set or move a booking's time range (``assign``,
``reschedule``) additionally take the provider lock before their final
overlap re-check.
"""

import logging
from datetime import date as date_type, datetime, time, timedelta
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from sqlalchemy.orm import Session

from auth.user_context import UserContext
from core.config import AUTO_APPROVE_FINISHED_ASSIGNMENTS
from core.constants import MAX_PROOFS_PER_FINISH
from core.exceptions import (
    CapacityConflictError, InvalidRequestError, InvalidTransitionError,
    NotFoundError, PermissionDeniedError, ProofRequiredError, SchedulingError,
)
from models import (
    Booking, BookingConsumable, Proof, ServiceProvider, WeeklySlot,
    AssignmentStatus, LifecycleAction, ProofStage, TimelineAction, TimelineEntry,
)
from models.enums import ASSIGNMENT_TRANSITIONS, RESCHEDULABLE_STATUSES
from services.issue_service import IssueService
from services.overlap_guard import OverlapGuard
from services.timeline_service import TimelineService
from shared_types.assignment import ConsumableUsage, ProofUpload
from shared_types.availability import AllocationResult, TimeRange
from utils.datetime_utils import business_now, format_time, minutes_between
from utils.interval_utils import envelope, interval_from_times, total_minutes

logger = logging.getLogger(__name__)


# Lifecycle timestamp written by each action
_TIMESTAMP_FIELDS: Dict[LifecycleAction, str] = {
    LifecycleAction.START: "started_at",
    LifecycleAction.HOLD: "held_at",
    LifecycleAction.RESUME: "resumed_at",
    LifecycleAction.FINISH: "finished_at",
    LifecycleAction.APPROVE: "completed_at",
    LifecycleAction.CANCEL: "cancelled_at",
}


class AssignmentService:
    """
    Service class for booking commits and lifecycle transitions.

    Lifecycle methods return the updated Booking. Providers may only act on
    their own bookings (other bookings look like they do not exist); admins
    may act on any booking and alone may approve finished work.
    """

    @staticmethod
    def allowed_sources(action: LifecycleAction) -> FrozenSet[AssignmentStatus]:
        """States from which ``action`` is legal."""
        return ASSIGNMENT_TRANSITIONS[action].sources

    @staticmethod
    def get_booking_or_404(db: Session, booking_id: int, for_update: bool = False) -> Booking:
        query = db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update()
        booking = query.first()
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    @staticmethod
    def _ensure_can_act(booking: Booking, actor: UserContext) -> None:
        if actor.is_admin() or actor.acts_as_provider(booking.provider_id):
            return
        raise NotFoundError("Booking", booking.id)

    @staticmethod
    def _ensure_transition_allowed(booking: Booking, action: LifecycleAction) -> None:
        if booking.status not in ASSIGNMENT_TRANSITIONS[action].sources:
            raise InvalidTransitionError(booking.id, booking.status.value, action.value)

    @staticmethod
    def apply_transition(
        db: Session,
        booking: Booking,
        action: LifecycleAction,
        performed_by: Optional[int],
        notes: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> TimelineEntry:
        """
        Apply one lifecycle transition inside the caller's transaction (no commit).

        Args:
            db: Database session
            booking: Booking, already locked by the caller
            action: Lifecycle action to apply
            performed_by: Acting user id, or None for the system
            notes: Notes for the timeline entry
            metadata: Extra timeline metadata
            now: Timestamp to record; defaults to the business clock

        Returns:
            The timeline entry describing the transition

        Raises:
            InvalidTransitionError: If the booking is not in a source state of ``action``
        """
        AssignmentService._ensure_transition_allowed(booking, action)
        transition = ASSIGNMENT_TRANSITIONS[action]
        previous = booking.status

        setattr(booking, _TIMESTAMP_FIELDS[action], now or business_now())
        booking.status = transition.target
        if action == LifecycleAction.CANCEL and notes:
            booking.cancellation_reason = notes

        entry = TimelineService.record(
            db,
            booking.issue_id,
            transition.timeline_action,
            booking_id=booking.id,
            performed_by=performed_by,
            notes=notes,
            metadata={
                "from_status": previous.value,
                "to_status": transition.target.value,
                **(metadata or {}),
            },
        )
        IssueService.refresh_issue_status(db, booking.issue)
        return entry

    @staticmethod
    def _run_transition(
        db: Session,
        booking_id: int,
        action: LifecycleAction,
        actor: UserContext,
        notes: Optional[str] = None
    ) -> Booking:
        try:
            booking = AssignmentService.get_booking_or_404(db, booking_id, for_update=True)
            AssignmentService._ensure_can_act(booking, actor)
            AssignmentService.apply_transition(db, booking, action, actor.user_id, notes=notes)
            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused {action.value} on booking {booking_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to {action.value} booking {booking_id}")
            raise

        logger.info(f"Booking {booking_id} {action.value} by user {actor.user_id} -> {booking.status.value}")
        return booking

    @staticmethod
    def start_work(db: Session, booking_id: int, actor: UserContext) -> Booking:
        """ASSIGNED -> IN_PROGRESS."""
        return AssignmentService._run_transition(db, booking_id, LifecycleAction.START, actor)

    @staticmethod
    def hold_work(db: Session, booking_id: int, actor: UserContext, reason: Optional[str] = None) -> Booking:
        """IN_PROGRESS -> ON_HOLD; the reason goes to the timeline entry."""
        return AssignmentService._run_transition(db, booking_id, LifecycleAction.HOLD, actor, notes=reason)

    @staticmethod
    def resume_work(db: Session, booking_id: int, actor: UserContext) -> Booking:
        """ON_HOLD -> IN_PROGRESS."""
        return AssignmentService._run_transition(db, booking_id, LifecycleAction.RESUME, actor)

    @staticmethod
    def cancel_work(db: Session, booking_id: int, actor: UserContext, reason: Optional[str] = None) -> Booking:
        """ASSIGNED, IN_PROGRESS or ON_HOLD -> CANCELLED. Frees the booked range."""
        return AssignmentService._run_transition(db, booking_id, LifecycleAction.CANCEL, actor, notes=reason)

    @staticmethod
    def approve_work(db: Session, booking_id: int, actor: UserContext, notes: Optional[str] = None) -> Booking:
        """
        FINISHED -> COMPLETED.

        Raises:
            PermissionDeniedError: If the actor is not an admin
        """
        if not actor.is_admin():
            raise PermissionDeniedError(f"User {actor.user_id} cannot approve work")
        return AssignmentService._run_transition(db, booking_id, LifecycleAction.APPROVE, actor, notes=notes)

    @staticmethod
    def finish_work(
        db: Session,
        booking_id: int,
        actor: UserContext,
        notes: Optional[str] = None,
        proofs: Optional[Sequence[ProofUpload]] = None,
        consumables: Optional[Sequence[ConsumableUsage]] = None
    ) -> Booking:
        """
        IN_PROGRESS -> FINISHED, attaching proofs and consumables.

        When auto-approval is enabled the booking continues straight to
        COMPLETED on behalf of the system, which adds a second timeline entry.

        Args:
            db: Database session
            booking_id: Booking to finish
            actor: Acting user
            notes: Completion notes stored on the booking
            proofs: Proof file references
            consumables: Consumables used

        Returns:
            The updated Booking

        Raises:
            InvalidTransitionError: If the booking is not in progress
            ProofRequiredError: If proof is required and none was given
            InvalidRequestError: If a proof or consumable entry is malformed
        """
        proofs = list(proofs or [])
        consumables = list(consumables or [])

        try:
            booking = AssignmentService.get_booking_or_404(db, booking_id, for_update=True)
            AssignmentService._ensure_can_act(booking, actor)
            AssignmentService._ensure_transition_allowed(booking, LifecycleAction.FINISH)

            if booking.proof_required and not proofs:
                raise ProofRequiredError(booking.id)
            if len(proofs) > MAX_PROOFS_PER_FINISH:
                raise InvalidRequestError(f"At most {MAX_PROOFS_PER_FINISH} proofs can be attached")
            for proof in proofs:
                if not proof.file_path:
                    raise InvalidRequestError("Proof file path is required")
            for usage in consumables:
                if usage.quantity < 1:
                    raise InvalidRequestError("Consumable quantity must be at least 1")
                if usage.consumable_id is None and not usage.custom_name:
                    raise InvalidRequestError("Consumable needs a catalogue id or a custom name")

            for proof in proofs:
                db.add(Proof(
                    booking_id=booking.id,
                    proof_type=proof.proof_type,
                    file_path=proof.file_path,
                    stage=ProofStage.COMPLETION,
                ))
            for usage in consumables:
                db.add(BookingConsumable(
                    booking_id=booking.id,
                    consumable_id=usage.consumable_id,
                    custom_name=usage.custom_name,
                    quantity=usage.quantity,
                ))
            if notes:
                booking.notes = notes

            now = business_now()
            AssignmentService.apply_transition(
                db,
                booking,
                LifecycleAction.FINISH,
                actor.user_id,
                notes=notes,
                metadata={
                    "proof_count": len(proofs),
                    "consumable_count": len(consumables),
                    "duration_minutes": minutes_between(booking.started_at, now),
                },
                now=now,
            )

            if AUTO_APPROVE_FINISHED_ASSIGNMENTS:
                AssignmentService.apply_transition(
                    db,
                    booking,
                    LifecycleAction.APPROVE,
                    None,
                    metadata={"auto_approved": True},
                    now=now,
                )

            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused finish on booking {booking_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to finish booking {booking_id}")
            raise

        logger.info(f"Booking {booking_id} finished by user {actor.user_id} -> {booking.status.value}")
        return booking

    @staticmethod
    def add_progress_proof(db: Session, booking_id: int, actor: UserContext, proof: ProofUpload) -> Proof:
        """
        Attach a during-work proof to an IN_PROGRESS or ON_HOLD booking.

        The booking status does not change and no timeline entry is written.

        Raises:
            InvalidTransitionError: If the work is not under way
            InvalidRequestError: If the file path is empty
        """
        if not proof.file_path:
            raise InvalidRequestError("Proof file path is required")

        try:
            booking = AssignmentService.get_booking_or_404(db, booking_id, for_update=True)
            AssignmentService._ensure_can_act(booking, actor)
            if booking.status not in (AssignmentStatus.IN_PROGRESS, AssignmentStatus.ON_HOLD):
                raise InvalidTransitionError(booking.id, booking.status.value, "add proof to")

            record = Proof(
                booking_id=booking.id,
                proof_type=proof.proof_type,
                file_path=proof.file_path,
                stage=ProofStage.DURING_WORK,
            )
            db.add(record)
            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused progress proof on booking {booking_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to add progress proof to booking {booking_id}")
            raise

        logger.info(f"Progress proof {record.id} added to booking {booking_id}")
        return record

    @staticmethod
    def _load_claimed_slots(db: Session, provider_id: int, slot_ids: Sequence[int]) -> List[WeeklySlot]:
        """
        Load the claimed slots, checking ownership and activity.

        Raises:
            InvalidRequestError: If the list is empty or any slot is unknown,
                inactive or belongs to another provider
        """
        unique_ids = list(dict.fromkeys(slot_ids))
        if not unique_ids:
            raise InvalidRequestError("At least one weekly slot must be claimed")

        slots = db.query(WeeklySlot).filter(WeeklySlot.id.in_(unique_ids)).all()
        by_id = {slot.id: slot for slot in slots}
        for slot_id in unique_ids:
            slot = by_id.get(slot_id)
            if slot is None or slot.provider_id != provider_id:
                raise InvalidRequestError(f"Weekly slot {slot_id} does not belong to provider {provider_id}")
            if not slot.is_active:
                raise InvalidRequestError(f"Weekly slot {slot_id} is not active")
        return [by_id[slot_id] for slot_id in unique_ids]

    @staticmethod
    def _resolve_range(
        slots: Sequence[WeeklySlot],
        scheduled_date: date_type,
        scheduled_end_date: date_type,
        start_time: Optional[time],
        end_time: Optional[time],
        allocated_duration_minutes: Optional[int]
    ) -> TimeRange:
        """
        Validate a booking's placement against its claimed slots.

        Without an explicit range, the full span of the claimed windows is used.

        Raises:
            InvalidRequestError: On any placement rule violation
        """
        if scheduled_end_date < scheduled_date:
            raise InvalidRequestError("scheduled_end_date cannot be before scheduled_date")

        span_days = (scheduled_end_date - scheduled_date).days
        covered_weekdays = {
            (scheduled_date + timedelta(days=offset)).weekday()
            for offset in range(min(span_days, 6) + 1)
        }
        for slot in slots:
            if slot.day_of_week not in covered_weekdays:
                raise InvalidRequestError(
                    f"Weekly slot {slot.id} ({slot.day_name}) does not fall on the scheduled date(s)"
                )

        windows = [slot.window for slot in slots]
        span = envelope(windows)
        assert span is not None

        if allocated_duration_minutes is not None:
            if allocated_duration_minutes <= 0:
                raise InvalidRequestError("allocated_duration_minutes must be positive")
            slot_minutes = total_minutes(windows)
            if slot_minutes < allocated_duration_minutes:
                raise InvalidRequestError(
                    f"Claimed slots offer {slot_minutes} minutes, {allocated_duration_minutes} required"
                )

        if start_time is None and end_time is None:
            return TimeRange.from_interval(span)
        if start_time is None or end_time is None:
            raise InvalidRequestError("assigned start and end times must be given together")

        requested = interval_from_times(start_time, end_time)
        if requested.start >= requested.end:
            raise InvalidRequestError("Assigned start time must be before end time")
        if requested.start < span.start or requested.end > span.end:
            raise InvalidRequestError(
                f"Assigned time {format_time(start_time)}-{format_time(end_time)} is outside the "
                f"claimed slots' range"
            )
        return TimeRange.from_interval(requested)

    @staticmethod
    def _check_commit_overlap(
        db: Session,
        provider_id: int,
        scheduled_date: date_type,
        time_range: TimeRange,
        exclude_booking_id: Optional[int] = None
    ) -> None:
        """Take the provider lock, then re-check the exact range."""
        OverlapGuard.lock_provider_schedule(db, provider_id)
        if OverlapGuard.has_overlap(
            db, provider_id, scheduled_date, time_range.start, time_range.end,
            exclude_booking_id=exclude_booking_id,
        ):
            raise CapacityConflictError(
                f"Provider {provider_id} is already booked between "
                f"{format_time(time_range.start)} and {format_time(time_range.end)} on {scheduled_date}",
                {"provider_id": provider_id, "date": scheduled_date.isoformat()},
            )

    @staticmethod
    def assign(
        db: Session,
        issue_id: int,
        provider_id: int,
        scheduled_date: date_type,
        slot_ids: Sequence[int],
        actor: UserContext,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        scheduled_end_date: Optional[date_type] = None,
        allocated_duration_minutes: Optional[int] = None,
        notes: Optional[str] = None
    ) -> Booking:
        """
        Create a new ASSIGNED booking for an issue.

        Args:
            db: Database session
            issue_id: Issue to assign
            provider_id: Service provider receiving the work
            scheduled_date: Date the assigned range applies to
            slot_ids: Weekly slots the booking draws capacity from
            actor: Acting user (must be an admin)
            start_time: Explicit range start; defaults to the claimed slots' span
            end_time: Explicit range end
            scheduled_end_date: Last day of a multi-day allocation
            allocated_duration_minutes: Requested work duration
            notes: Notes for the provider

        Returns:
            The new Booking

        Raises:
            PermissionDeniedError: If the actor is not an admin
            NotFoundError: If the issue or provider does not exist
            InvalidRequestError: If the issue is closed, the provider inactive,
                or the placement breaks a slot rule
            CapacityConflictError: If the range overlaps another booking of the provider
        """
        if not actor.is_admin():
            raise PermissionDeniedError(f"User {actor.user_id} cannot assign issues")

        try:
            issue = IssueService.get_issue_or_404(db, issue_id, for_update=True)
            if not issue.can_be_assigned():
                raise InvalidRequestError(f"Issue {issue_id} is {issue.status.value} and cannot be assigned")

            provider = db.get(ServiceProvider, provider_id)
            if not provider:
                raise NotFoundError("ServiceProvider", provider_id)
            if not provider.is_active:
                raise InvalidRequestError(f"Service provider {provider_id} is not active")

            slots = AssignmentService._load_claimed_slots(db, provider_id, slot_ids)
            end_date = scheduled_end_date or scheduled_date
            time_range = AssignmentService._resolve_range(
                slots, scheduled_date, end_date, start_time, end_time, allocated_duration_minutes,
            )
            claimed_ids = [slot.id for slot in slots]

            if start_time is None and OverlapGuard.has_multi_slot_overlap(
                db, provider_id, scheduled_date, claimed_ids
            ):
                raise CapacityConflictError(
                    f"Claimed slots of provider {provider_id} already hold bookings on {scheduled_date}",
                    {"provider_id": provider_id, "date": scheduled_date.isoformat()},
                )

            AssignmentService._check_commit_overlap(db, provider_id, scheduled_date, time_range)

            booking = Booking(
                issue_id=issue.id,
                provider_id=provider_id,
                scheduled_date=scheduled_date,
                scheduled_end_date=end_date,
                claimed_slot_ids=claimed_ids,
                assigned_start_time=time_range.start,
                assigned_end_time=time_range.end,
                allocated_duration_minutes=allocated_duration_minutes,
                status=AssignmentStatus.ASSIGNED,
                proof_required=issue.proof_required,
                notes=notes,
            )
            db.add(booking)
            db.flush()

            TimelineService.record(
                db,
                issue.id,
                TimelineAction.ASSIGNED,
                booking_id=booking.id,
                performed_by=actor.user_id,
                notes=notes,
                metadata={
                    "provider_id": provider.id,
                    "provider_name": provider.name,
                    "scheduled_date": scheduled_date.isoformat(),
                    "scheduled_end_date": end_date.isoformat(),
                    "time_slots": [slot.formatted_time_range for slot in slots],
                    "assigned_start_time": format_time(time_range.start),
                    "assigned_end_time": format_time(time_range.end),
                    "allocated_duration_minutes": allocated_duration_minutes,
                },
            )
            IssueService.refresh_issue_status(db, issue)
            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused assignment of issue {issue_id} to provider {provider_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to assign issue {issue_id} to provider {provider_id}")
            raise

        logger.info(
            f"Assigned issue {issue_id} to provider {provider_id} on {scheduled_date} "
            f"{format_time(time_range.start)}-{format_time(time_range.end)} (booking {booking.id})"
        )
        return booking

    @staticmethod
    def assign_from_allocation(
        db: Session,
        issue_id: int,
        allocation: AllocationResult,
        actor: UserContext,
        notes: Optional[str] = None
    ) -> Booking:
        """
        Commit a fulfilled allocation proposal as a booking.

        The booking claims every slot of the allocation, starts on the first
        claim's date, ends on the last, and persists the display range.

        Raises:
            InvalidRequestError: If the allocation is empty or has a shortfall
        """
        if not allocation.claims:
            raise InvalidRequestError("Allocation has no claims to commit")
        if not allocation.is_fulfilled:
            raise InvalidRequestError(
                f"Allocation is short by {allocation.shortfall_minutes} minutes and cannot be committed"
            )

        display = allocation.display_range
        assert display is not None
        first_date = min(claim.date for claim in allocation.claims)

        return AssignmentService.assign(
            db,
            issue_id,
            allocation.provider_id,
            first_date,
            allocation.slot_ids,
            actor,
            start_time=display.start,
            end_time=display.end,
            scheduled_end_date=allocation.end_date,
            allocated_duration_minutes=allocation.needed_minutes,
            notes=notes,
        )

    @staticmethod
    def reschedule(
        db: Session,
        booking_id: int,
        actor: UserContext,
        scheduled_date: date_type,
        slot_ids: Sequence[int],
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        scheduled_end_date: Optional[date_type] = None
    ) -> Booking:
        """
        Move an ASSIGNED or ON_HOLD booking to another date, range or slot set.

        The booking is excluded from its own overlap checks.

        Raises:
            PermissionDeniedError: If the actor is not an admin
            NotFoundError: If the booking does not exist
            InvalidTransitionError: If the booking cannot be rescheduled in its current state
            InvalidRequestError: If the new placement breaks a slot rule
            CapacityConflictError: If the new range overlaps another booking
        """
        if not actor.is_admin():
            raise PermissionDeniedError(f"User {actor.user_id} cannot reschedule bookings")

        try:
            booking = AssignmentService.get_booking_or_404(db, booking_id, for_update=True)
            if booking.status not in RESCHEDULABLE_STATUSES:
                raise InvalidTransitionError(booking.id, booking.status.value, "reschedule")

            slots = AssignmentService._load_claimed_slots(db, booking.provider_id, slot_ids)
            end_date = scheduled_end_date or scheduled_date
            time_range = AssignmentService._resolve_range(
                slots, scheduled_date, end_date, start_time, end_time, booking.allocated_duration_minutes,
            )
            AssignmentService._check_commit_overlap(
                db, booking.provider_id, scheduled_date, time_range, exclude_booking_id=booking.id,
            )

            before = {
                "scheduled_date": booking.scheduled_date.isoformat(),
                "scheduled_end_date": booking.scheduled_end_date.isoformat() if booking.scheduled_end_date else None,
                "claimed_slot_ids": list(booking.claimed_slot_ids or []),
                "assigned_start_time": format_time(booking.assigned_start_time) if booking.assigned_start_time else None,
                "assigned_end_time": format_time(booking.assigned_end_time) if booking.assigned_end_time else None,
            }

            booking.scheduled_date = scheduled_date
            booking.scheduled_end_date = end_date
            booking.claimed_slot_ids = [slot.id for slot in slots]
            booking.assigned_start_time = time_range.start
            booking.assigned_end_time = time_range.end

            after = {
                "scheduled_date": scheduled_date.isoformat(),
                "scheduled_end_date": end_date.isoformat(),
                "claimed_slot_ids": list(booking.claimed_slot_ids),
                "assigned_start_time": format_time(time_range.start),
                "assigned_end_time": format_time(time_range.end),
            }

            TimelineService.record(
                db,
                booking.issue_id,
                TimelineAction.ASSIGNMENT_UPDATED,
                booking_id=booking.id,
                performed_by=actor.user_id,
                metadata={"before": before, "after": after},
            )
            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused reschedule of booking {booking_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to reschedule booking {booking_id}")
            raise

        logger.info(f"Rescheduled booking {booking_id} to {scheduled_date} {after['assigned_start_time']}-{after['assigned_end_time']}")
        return booking
