"""
Time extension negotiation for in-progress bookings.

Approving an extension moves the booking's end time, so it goes through the
same provider lock and overlap re-check as any other range write. A refused
approval changes nothing: the request stays pending and the booking keeps
its range.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from auth.user_context import UserContext
from core.config import EXTENSION_MAX_MINUTES, EXTENSION_MIN_MINUTES
from core.constants import MIN_EXTENSION_REASON_LENGTH, MIN_REJECTION_NOTES_LENGTH, MINUTES_PER_DAY
from core.exceptions import (
    CapacityConflictError, InvalidRequestError, InvalidTransitionError,
    NotFoundError, PermissionDeniedError, SchedulingError,
)
from models import AssignmentStatus, Booking, ExtensionRequest, ExtensionStatus, TimelineAction
from services.assignment_service import AssignmentService
from services.overlap_guard import OverlapGuard
from services.timeline_service import TimelineService
from utils.datetime_utils import business_now, format_time
from utils.interval_utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)


class ExtensionService:
    """Service class for requesting and deciding time extensions."""

    @staticmethod
    def get_request_or_404(db: Session, request_id: int, for_update: bool = False) -> ExtensionRequest:
        query = db.query(ExtensionRequest).filter(ExtensionRequest.id == request_id)
        if for_update:
            query = query.with_for_update()
        extension = query.first()
        if not extension:
            raise NotFoundError("ExtensionRequest", request_id)
        return extension

    @staticmethod
    def request_extension(
        db: Session,
        booking_id: int,
        requested_minutes: int,
        reason: str,
        actor: UserContext
    ) -> ExtensionRequest:
        """
        File a PENDING extension request for an in-progress booking.

        Args:
            db: Database session
            booking_id: Booking that needs more time
            requested_minutes: Extra minutes requested
            reason: Why the extra time is needed
            actor: The booking's provider (or an admin)

        Returns:
            The new ExtensionRequest

        Raises:
            NotFoundError: If the booking does not exist or is not the actor's
            InvalidTransitionError: If the booking is not in progress
            InvalidRequestError: If the minutes or reason are out of bounds, or a
                request is already pending for the booking
        """
        if requested_minutes < EXTENSION_MIN_MINUTES or requested_minutes > EXTENSION_MAX_MINUTES:
            raise InvalidRequestError(
                f"Requested minutes must be between {EXTENSION_MIN_MINUTES} and {EXTENSION_MAX_MINUTES}"
            )
        reason = (reason or "").strip()
        if len(reason) < MIN_EXTENSION_REASON_LENGTH:
            raise InvalidRequestError(
                f"Reason must be at least {MIN_EXTENSION_REASON_LENGTH} characters"
            )

        try:
            booking = AssignmentService.get_booking_or_404(db, booking_id, for_update=True)
            if not (actor.is_admin() or actor.acts_as_provider(booking.provider_id)):
                raise NotFoundError("Booking", booking_id)
            if booking.status != AssignmentStatus.IN_PROGRESS:
                raise InvalidTransitionError(booking.id, booking.status.value, "request extension")

            pending = db.query(ExtensionRequest).filter(
                ExtensionRequest.booking_id == booking.id,
                ExtensionRequest.status == ExtensionStatus.PENDING,
            ).first()
            if pending:
                raise InvalidRequestError(
                    f"Booking {booking.id} already has a pending extension request ({pending.id})"
                )

            extension = ExtensionRequest(
                booking_id=booking.id,
                requested_minutes=requested_minutes,
                reason=reason,
                requester_id=actor.user_id,
                status=ExtensionStatus.PENDING,
                requested_at=business_now(),
            )
            db.add(extension)
            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused extension request on booking {booking_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to create extension request for booking {booking_id}")
            raise

        logger.info(f"Extension request {extension.id} for booking {booking_id}: +{requested_minutes} minutes")
        return extension

    @staticmethod
    def _lock_pending(db: Session, request_id: int, actor: UserContext, action: str) -> ExtensionRequest:
        if not actor.is_admin():
            raise PermissionDeniedError(f"User {actor.user_id} cannot {action} extension requests")
        extension = ExtensionService.get_request_or_404(db, request_id, for_update=True)
        if not extension.is_pending:
            raise InvalidRequestError(
                f"Extension request {request_id} was already {extension.status.value}"
            )
        return extension

    @staticmethod
    def approve_extension(
        db: Session,
        request_id: int,
        actor: UserContext,
        admin_notes: Optional[str] = None
    ) -> ExtensionRequest:
        """
        Approve a pending request and extend the booking's end time.

        The new range ``[end, end + requested_minutes)`` is checked against
        every other live booking of the provider on the booking's
        scheduled date, and on its last date when that differs, under the
        provider lock. On conflict nothing is written.

        Raises:
            PermissionDeniedError: If the actor is not an admin
            NotFoundError: If the request does not exist
            InvalidRequestError: If the request is not pending, or the new end
                would pass midnight
            CapacityConflictError: If the extended range overlaps another booking
        """
        try:
            extension = ExtensionService._lock_pending(db, request_id, actor, "approve")
            booking: Booking = extension.booking

            metadata = {"extension_request_id": extension.id, "requested_minutes": extension.requested_minutes}

            if booking.assigned_end_time is not None:
                old_end = booking.assigned_end_time
                new_end_minutes = time_to_minutes(old_end) + extension.requested_minutes
                if new_end_minutes >= MINUTES_PER_DAY:
                    raise InvalidRequestError(
                        f"Extending booking {booking.id} by {extension.requested_minutes} minutes would pass midnight"
                    )
                new_end = minutes_to_time(new_end_minutes)
                # The range lives on scheduled_date; a multi-day booking also ends on its last day
                check_dates = list(dict.fromkeys(
                    d for d in (booking.scheduled_date, booking.scheduled_end_date) if d is not None
                ))

                OverlapGuard.lock_provider_schedule(db, booking.provider_id)
                for check_date in check_dates:
                    if OverlapGuard.has_overlap(
                        db, booking.provider_id, check_date, old_end, new_end, exclude_booking_id=booking.id,
                    ):
                        raise CapacityConflictError(
                            f"Extending booking {booking.id} to {format_time(new_end)} overlaps another booking "
                            f"on {check_date}",
                            {"booking_id": booking.id, "extension_request_id": extension.id},
                        )

                booking.assigned_end_time = new_end
                metadata["previous_end_time"] = format_time(old_end)
                metadata["new_end_time"] = format_time(new_end)

            if booking.allocated_duration_minutes is not None:
                booking.allocated_duration_minutes += extension.requested_minutes

            extension.status = ExtensionStatus.APPROVED
            extension.responder_id = actor.user_id
            extension.admin_notes = admin_notes
            extension.responded_at = business_now()

            TimelineService.record(
                db,
                booking.issue_id,
                TimelineAction.EXTENSION_APPROVED,
                booking_id=booking.id,
                performed_by=actor.user_id,
                notes=admin_notes,
                metadata=metadata,
            )
            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused approval of extension request {request_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to approve extension request {request_id}")
            raise

        logger.info(f"Extension request {request_id} approved by user {actor.user_id}")
        return extension

    @staticmethod
    def reject_extension(
        db: Session,
        request_id: int,
        actor: UserContext,
        admin_notes: str
    ) -> ExtensionRequest:
        """
        Reject a pending request. The booking is not touched.

        Raises:
            PermissionDeniedError: If the actor is not an admin
            NotFoundError: If the request does not exist
            InvalidRequestError: If the request is not pending or the notes are too short
        """
        admin_notes = (admin_notes or "").strip()
        if len(admin_notes) < MIN_REJECTION_NOTES_LENGTH:
            raise InvalidRequestError(
                f"Rejection notes must be at least {MIN_REJECTION_NOTES_LENGTH} characters"
            )

        try:
            extension = ExtensionService._lock_pending(db, request_id, actor, "reject")

            extension.status = ExtensionStatus.REJECTED
            extension.responder_id = actor.user_id
            extension.admin_notes = admin_notes
            extension.responded_at = business_now()

            TimelineService.record(
                db,
                extension.booking.issue_id,
                TimelineAction.EXTENSION_REJECTED,
                booking_id=extension.booking_id,
                performed_by=actor.user_id,
                notes=admin_notes,
                metadata={"extension_request_id": extension.id, "requested_minutes": extension.requested_minutes},
            )
            db.commit()
        except SchedulingError as e:
            db.rollback()
            logger.warning(f"Refused rejection of extension request {request_id}: {e.message}")
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to reject extension request {request_id}")
            raise

        logger.info(f"Extension request {request_id} rejected by user {actor.user_id}")
        return extension

    @staticmethod
    def list_extension_requests(
        db: Session,
        status: Optional[ExtensionStatus] = None,
        booking_id: Optional[int] = None
    ) -> List[ExtensionRequest]:
        """Extension requests, newest first, optionally filtered."""
        query = db.query(ExtensionRequest)
        if status is not None:
            query = query.filter(ExtensionRequest.status == status)
        if booking_id is not None:
            query = query.filter(ExtensionRequest.booking_id == booking_id)
        return query.order_by(ExtensionRequest.id.desc()).all()
