"""
Issue service for creating and cancelling issues and keeping their status
in step with their bookings.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from auth.user_context import UserContext
from core.exceptions import InvalidRequestError, NotFoundError
from models import Booking, Issue, AssignmentStatus, IssueStatus, TimelineAction, LifecycleAction
from services.timeline_service import TimelineService

logger = logging.getLogger(__name__)


class IssueService:
    """
    Service class for issue-level operations.

    An issue's status is never set by hand: it is recomputed from its
    bookings after every booking transition.
    """

    @staticmethod
    def get_issue_or_404(db: Session, issue_id: int, for_update: bool = False) -> Issue:
        query = db.query(Issue).filter(Issue.id == issue_id)
        if for_update:
            query = query.with_for_update()
        issue = query.first()
        if not issue:
            raise NotFoundError("Issue", issue_id)
        return issue

    @staticmethod
    def create_issue(
        db: Session,
        title: str,
        description: Optional[str] = None,
        proof_required: bool = False,
        created_by: Optional[int] = None
    ) -> Issue:
        """
        Create a PENDING issue and its CREATED timeline entry.

        Raises:
            InvalidRequestError: If the title is blank
        """
        if not title or not title.strip():
            raise InvalidRequestError("Issue title is required")

        try:
            issue = Issue(
                title=title.strip(),
                description=description,
                proof_required=proof_required,
                created_by=created_by,
                status=IssueStatus.PENDING,
            )
            db.add(issue)
            db.flush()

            TimelineService.record(
                db, issue.id, TimelineAction.CREATED, performed_by=created_by,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Created issue {issue.id}")
        return issue

    @staticmethod
    def calculate_status_from_bookings(statuses: Iterable[AssignmentStatus]) -> IssueStatus:
        """
        Derive an issue status from the statuses of its bookings.

        Cancelled bookings are ignored. Rules, first match wins:
        no live bookings -> PENDING; any in progress -> IN_PROGRESS; any on
        hold -> ON_HOLD; all completed -> COMPLETED; every non-completed one
        finished -> FINISHED; otherwise ASSIGNED.
        """
        live = [s for s in statuses if s != AssignmentStatus.CANCELLED]
        if not live:
            return IssueStatus.PENDING
        if AssignmentStatus.IN_PROGRESS in live:
            return IssueStatus.IN_PROGRESS
        if AssignmentStatus.ON_HOLD in live:
            return IssueStatus.ON_HOLD
        if all(s == AssignmentStatus.COMPLETED for s in live):
            return IssueStatus.COMPLETED
        if all(s == AssignmentStatus.FINISHED for s in live if s != AssignmentStatus.COMPLETED):
            return IssueStatus.FINISHED
        return IssueStatus.ASSIGNED

    @staticmethod
    def refresh_issue_status(db: Session, issue: Issue) -> IssueStatus:
        """
        Recompute and set the issue's status from its bookings (no commit).

        A cancelled issue stays cancelled.
        """
        if issue.status == IssueStatus.CANCELLED:
            return issue.status

        db.flush()
        statuses = [row.status for row in db.query(Booking.status).filter(Booking.issue_id == issue.id)]
        new_status = IssueService.calculate_status_from_bookings(statuses)
        if new_status != issue.status:
            logger.debug(f"Issue {issue.id} status {issue.status.value} -> {new_status.value}")
            issue.status = new_status
        return new_status

    @staticmethod
    def cancel_issue(
        db: Session,
        issue_id: int,
        actor: UserContext,
        reason: Optional[str] = None
    ) -> Issue:
        """
        Cancel an issue together with its cancellable bookings.

        Every ASSIGNED, IN_PROGRESS or ON_HOLD booking goes through the normal
        cancel transition (one CANCELLED entry each), then the issue is marked
        CANCELLED with an issue-level CANCELLED entry.

        Raises:
            NotFoundError: If the issue does not exist
            InvalidRequestError: If the issue is already completed or cancelled
        """
        # Import here to avoid circular import
        from services.assignment_service import AssignmentService

        try:
            issue = IssueService.get_issue_or_404(db, issue_id, for_update=True)
            if not issue.can_be_cancelled():
                raise InvalidRequestError(
                    f"Issue {issue_id} cannot be cancelled while it is {issue.status.value}"
                )

            cancel_sources = AssignmentService.allowed_sources(LifecycleAction.CANCEL)
            bookings = db.query(Booking).filter(Booking.issue_id == issue.id).order_by(Booking.id).all()
            for booking in bookings:
                if booking.status in cancel_sources:
                    AssignmentService.apply_transition(
                        db, booking, LifecycleAction.CANCEL, actor.user_id, notes=reason,
                    )

            issue.status = IssueStatus.CANCELLED
            TimelineService.record(
                db, issue.id, TimelineAction.CANCELLED, performed_by=actor.user_id, notes=reason,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Issue {issue_id} cancelled by user {actor.user_id}")
        return issue
