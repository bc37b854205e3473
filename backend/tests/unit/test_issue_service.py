"""
Unit tests for issue creation, status derivation and cancellation.
"""

import pytest
from datetime import time

from core.exceptions import InvalidRequestError, NotFoundError
from models import AssignmentStatus, IssueStatus, TimelineAction
from services.assignment_service import AssignmentService
from services.issue_service import IssueService
from services.timeline_service import TimelineService
from tests.conftest import MONDAY, create_booking, create_provider, create_slot, provider_context

A = AssignmentStatus


class TestCalculateStatusFromBookings:

    @pytest.mark.parametrize("statuses,expected", [
        ([], IssueStatus.PENDING),
        ([A.CANCELLED], IssueStatus.PENDING),
        ([A.ASSIGNED], IssueStatus.ASSIGNED),
        ([A.ASSIGNED, A.IN_PROGRESS], IssueStatus.IN_PROGRESS),
        ([A.ON_HOLD, A.IN_PROGRESS], IssueStatus.IN_PROGRESS),
        ([A.ON_HOLD, A.FINISHED], IssueStatus.ON_HOLD),
        ([A.COMPLETED, A.COMPLETED], IssueStatus.COMPLETED),
        ([A.COMPLETED, A.CANCELLED], IssueStatus.COMPLETED),
        ([A.FINISHED, A.COMPLETED], IssueStatus.FINISHED),
        ([A.FINISHED], IssueStatus.FINISHED),
        ([A.FINISHED, A.ASSIGNED], IssueStatus.ASSIGNED),
        ([A.COMPLETED, A.ASSIGNED], IssueStatus.ASSIGNED),
    ])
    def test_rules(self, statuses, expected):
        assert IssueService.calculate_status_from_bookings(statuses) == expected


class TestCreateIssue:

    def test_creates_pending_issue_with_entry(self, db_session):
        issue = IssueService.create_issue(db_session, "  Broken lock  ", created_by=5)

        assert issue.title == "Broken lock"
        assert issue.status == IssueStatus.PENDING
        entries = TimelineService.list_for_issue(db_session, issue.id)
        assert [(e.action, e.performed_by) for e in entries] == [(TimelineAction.CREATED, 5)]

    def test_blank_title(self, db_session):
        with pytest.raises(InvalidRequestError):
            IssueService.create_issue(db_session, "   ")

    def test_unknown_issue(self, db_session):
        with pytest.raises(NotFoundError):
            IssueService.get_issue_or_404(db_session, 999)


class TestCancelIssue:

    @pytest.fixture
    def provider(self, db_session):
        return create_provider(db_session)

    @pytest.fixture
    def slot(self, db_session, provider):
        return create_slot(db_session, provider, 0, time(9, 0), time(17, 0))

    def test_cancels_active_bookings_only(self, db_session, admin, provider, slot):
        issue = IssueService.create_issue(db_session, "Flooded basement")
        active = create_booking(db_session, provider, MONDAY, time(9, 0), time(10, 0), [slot.id], issue=issue)
        finished = create_booking(db_session, provider, MONDAY, time(10, 0), time(11, 0), [slot.id],
                                  status=AssignmentStatus.FINISHED, issue=issue)

        IssueService.cancel_issue(db_session, issue.id, admin, reason="Tenant moved out")

        assert issue.status == IssueStatus.CANCELLED
        assert active.status == AssignmentStatus.CANCELLED
        assert active.cancellation_reason == "Tenant moved out"
        assert finished.status == AssignmentStatus.FINISHED
        entries = TimelineService.list_for_issue(db_session, issue.id)
        assert [(e.action, e.booking_id) for e in entries] == [
            (TimelineAction.CREATED, None),
            (TimelineAction.CANCELLED, active.id),
            (TimelineAction.CANCELLED, None),
        ]

    def test_cancelled_issue_stays_cancelled(self, db_session, admin, provider, slot):
        issue = IssueService.create_issue(db_session, "Flooded basement")
        finished = create_booking(db_session, provider, MONDAY, time(10, 0), time(11, 0), [slot.id],
                                  status=AssignmentStatus.FINISHED, issue=issue)
        IssueService.cancel_issue(db_session, issue.id, admin)

        AssignmentService.approve_work(db_session, finished.id, admin)

        assert finished.status == AssignmentStatus.COMPLETED
        assert issue.status == IssueStatus.CANCELLED

    @pytest.mark.parametrize("closed", [IssueStatus.CANCELLED, IssueStatus.COMPLETED])
    def test_closed_issue_cannot_be_cancelled(self, db_session, admin, closed):
        issue = IssueService.create_issue(db_session, "Flooded basement")
        issue.status = closed
        db_session.commit()

        with pytest.raises(InvalidRequestError):
            IssueService.cancel_issue(db_session, issue.id, admin)

    def test_status_follows_bookings(self, db_session, admin, provider, slot):
        issue = IssueService.create_issue(db_session, "Flooded basement")
        first = AssignmentService.assign(
            db_session, issue.id, provider.id, MONDAY, [slot.id], admin,
            start_time=time(9, 0), end_time=time(10, 0),
        )
        AssignmentService.assign(
            db_session, issue.id, provider.id, MONDAY, [slot.id], admin,
            start_time=time(10, 0), end_time=time(11, 0),
        )

        AssignmentService.start_work(db_session, first.id, provider_context(provider))
        assert issue.status == IssueStatus.IN_PROGRESS

        AssignmentService.cancel_work(db_session, first.id, admin)
        assert issue.status == IssueStatus.ASSIGNED
