"""
Unit tests for time extension requests and their approval.
"""

import pytest
from datetime import time

from core.exceptions import (
    CapacityConflictError, InvalidRequestError, InvalidTransitionError,
    NotFoundError, PermissionDeniedError,
)
from models import AssignmentStatus, Booking, ExtensionRequest, ExtensionStatus, TimelineAction
from services.assignment_service import AssignmentService
from services.extension_service import ExtensionService
from services.issue_service import IssueService
from services.timeline_service import TimelineService
from tests.conftest import MONDAY, TUESDAY, create_booking, create_provider, create_slot, provider_context


REASON = "Pipe corrosion worse than expected"


@pytest.fixture
def provider(db_session):
    return create_provider(db_session)


@pytest.fixture
def slot(db_session, provider):
    return create_slot(db_session, provider, 0, time(9, 0), time(17, 0))


@pytest.fixture
def booking(db_session, admin, provider, slot):
    """IN_PROGRESS booking for 10:00-11:00 on Monday."""
    issue = IssueService.create_issue(db_session, "Leaking pipe")
    booking = AssignmentService.assign(
        db_session, issue.id, provider.id, MONDAY, [slot.id], admin,
        start_time=time(10, 0), end_time=time(11, 0), allocated_duration_minutes=60,
    )
    AssignmentService.start_work(db_session, booking.id, provider_context(provider))
    return booking


@pytest.fixture
def pending(db_session, provider, booking):
    return ExtensionService.request_extension(db_session, booking.id, 30, REASON, provider_context(provider))


class TestRequestExtension:

    def test_creates_pending_request(self, db_session, provider, booking, pending):
        assert pending.status == ExtensionStatus.PENDING
        assert pending.requested_minutes == 30
        assert pending.reason == REASON
        assert pending.requester_id == provider.user_id
        assert pending.requested_at is not None

    @pytest.mark.parametrize("minutes", [0, 14, 241])
    def test_minutes_out_of_bounds(self, db_session, provider, booking, minutes):
        with pytest.raises(InvalidRequestError):
            ExtensionService.request_extension(db_session, booking.id, minutes, REASON, provider_context(provider))

    def test_reason_too_short(self, db_session, provider, booking):
        with pytest.raises(InvalidRequestError):
            ExtensionService.request_extension(db_session, booking.id, 30, "  short  ", provider_context(provider))

    def test_booking_must_be_in_progress(self, db_session, provider, slot):
        assigned = create_booking(db_session, provider, MONDAY, time(13, 0), time(14, 0), [slot.id])

        with pytest.raises(InvalidTransitionError):
            ExtensionService.request_extension(db_session, assigned.id, 30, REASON, provider_context(provider))

    def test_only_one_pending_request(self, db_session, provider, booking, pending):
        with pytest.raises(InvalidRequestError):
            ExtensionService.request_extension(db_session, booking.id, 15, REASON, provider_context(provider))

        assert db_session.query(ExtensionRequest).count() == 1

    def test_other_provider_cannot_request(self, db_session, booking):
        stranger = create_provider(db_session, name="Stranger", user_id=200)

        with pytest.raises(NotFoundError):
            ExtensionService.request_extension(db_session, booking.id, 30, REASON, provider_context(stranger))


class TestApproveExtension:

    def test_extends_end_time(self, db_session, admin, booking, pending):
        ExtensionService.approve_extension(db_session, pending.id, admin, admin_notes="Go ahead")

        assert pending.status == ExtensionStatus.APPROVED
        assert pending.responder_id == admin.user_id
        assert pending.responded_at is not None
        assert booking.assigned_end_time == time(11, 30)
        assert booking.allocated_duration_minutes == 90

        entry = TimelineService.list_for_booking(db_session, booking.id)[-1]
        assert entry.action == TimelineAction.EXTENSION_APPROVED
        assert entry.metadata_["previous_end_time"] == "11:00"
        assert entry.metadata_["new_end_time"] == "11:30"

    def test_conflict_changes_nothing(self, db_session, admin, provider, slot, booking, pending):
        create_booking(db_session, provider, MONDAY, time(11, 15), time(12, 0), [slot.id])

        with pytest.raises(CapacityConflictError):
            ExtensionService.approve_extension(db_session, pending.id, admin)

        assert db_session.get(ExtensionRequest, pending.id).status == ExtensionStatus.PENDING
        assert db_session.get(Booking, booking.id).assigned_end_time == time(11, 0)
        actions = [e.action for e in TimelineService.list_for_booking(db_session, booking.id)]
        assert TimelineAction.EXTENSION_APPROVED not in actions

    def test_adjacent_booking_does_not_conflict(self, db_session, admin, provider, slot, booking, pending):
        create_booking(db_session, provider, MONDAY, time(11, 30), time(12, 0), [slot.id])

        ExtensionService.approve_extension(db_session, pending.id, admin)

        assert booking.assigned_end_time == time(11, 30)

    def test_cancelled_booking_does_not_conflict(self, db_session, admin, provider, slot, booking, pending):
        create_booking(db_session, provider, MONDAY, time(11, 0), time(12, 0), [slot.id],
                       status=AssignmentStatus.CANCELLED)

        ExtensionService.approve_extension(db_session, pending.id, admin)

        assert pending.status == ExtensionStatus.APPROVED

    @pytest.fixture
    def multi_day(self, db_session, admin, provider, slot):
        """IN_PROGRESS booking Monday to Tuesday, ranged 09:00-10:00."""
        tuesday = create_slot(db_session, provider, 1, time(9, 0), time(17, 0))
        issue = IssueService.create_issue(db_session, "Repaint stairwell")
        booking = AssignmentService.assign(
            db_session, issue.id, provider.id, MONDAY, [slot.id, tuesday.id], admin,
            start_time=time(9, 0), end_time=time(10, 0), scheduled_end_date=TUESDAY,
        )
        AssignmentService.start_work(db_session, booking.id, provider_context(provider))
        return booking, tuesday

    def test_multi_day_conflict_on_scheduled_date(self, db_session, admin, provider, slot, multi_day):
        booking, _ = multi_day
        create_booking(db_session, provider, MONDAY, time(10, 0), time(11, 0), [slot.id])
        extension = ExtensionService.request_extension(
            db_session, booking.id, 60, REASON, provider_context(provider)
        )

        with pytest.raises(CapacityConflictError):
            ExtensionService.approve_extension(db_session, extension.id, admin)

        assert db_session.get(ExtensionRequest, extension.id).status == ExtensionStatus.PENDING
        assert db_session.get(Booking, booking.id).assigned_end_time == time(10, 0)

    def test_multi_day_conflict_on_last_date(self, db_session, admin, provider, multi_day):
        booking, tuesday = multi_day
        create_booking(db_session, provider, TUESDAY, time(10, 0), time(11, 0), [tuesday.id])
        extension = ExtensionService.request_extension(
            db_session, booking.id, 60, REASON, provider_context(provider)
        )

        with pytest.raises(CapacityConflictError):
            ExtensionService.approve_extension(db_session, extension.id, admin)

    def test_multi_day_free_extension_is_approved(self, db_session, admin, provider, multi_day):
        booking, _ = multi_day
        extension = ExtensionService.request_extension(
            db_session, booking.id, 60, REASON, provider_context(provider)
        )

        ExtensionService.approve_extension(db_session, extension.id, admin)

        assert booking.assigned_end_time == time(11, 0)

    def test_cannot_pass_midnight(self, db_session, admin, provider):
        late = create_slot(db_session, provider, 0, time(22, 0), time(23, 59))
        booking = create_booking(db_session, provider, MONDAY, time(23, 0), time(23, 30), [late.id],
                                 status=AssignmentStatus.IN_PROGRESS)
        extension = ExtensionService.request_extension(
            db_session, booking.id, 30, REASON, provider_context(provider)
        )

        with pytest.raises(InvalidRequestError):
            ExtensionService.approve_extension(db_session, extension.id, admin)

        assert db_session.get(ExtensionRequest, extension.id).status == ExtensionStatus.PENDING

    def test_requires_admin(self, db_session, provider, pending):
        with pytest.raises(PermissionDeniedError):
            ExtensionService.approve_extension(db_session, pending.id, provider_context(provider))

    def test_cannot_decide_twice(self, db_session, admin, pending):
        ExtensionService.approve_extension(db_session, pending.id, admin)

        with pytest.raises(InvalidRequestError):
            ExtensionService.approve_extension(db_session, pending.id, admin)

    def test_unknown_request(self, db_session, admin):
        with pytest.raises(NotFoundError):
            ExtensionService.approve_extension(db_session, 999, admin)


class TestRejectExtension:

    def test_rejects_without_touching_booking(self, db_session, admin, booking, pending):
        ExtensionService.reject_extension(db_session, pending.id, admin, "Finish tomorrow instead")

        assert pending.status == ExtensionStatus.REJECTED
        assert pending.admin_notes == "Finish tomorrow instead"
        assert booking.assigned_end_time == time(11, 0)
        entry = TimelineService.list_for_booking(db_session, booking.id)[-1]
        assert entry.action == TimelineAction.EXTENSION_REJECTED

    def test_notes_too_short(self, db_session, admin, pending):
        with pytest.raises(InvalidRequestError):
            ExtensionService.reject_extension(db_session, pending.id, admin, "No")

    def test_new_request_allowed_after_rejection(self, db_session, admin, provider, booking, pending):
        ExtensionService.reject_extension(db_session, pending.id, admin, "Finish tomorrow instead")

        second = ExtensionService.request_extension(
            db_session, booking.id, 15, REASON, provider_context(provider)
        )

        assert second.status == ExtensionStatus.PENDING


class TestListExtensionRequests:

    def test_filters(self, db_session, admin, provider, booking, pending):
        ExtensionService.reject_extension(db_session, pending.id, admin, "Finish tomorrow instead")
        second = ExtensionService.request_extension(
            db_session, booking.id, 15, REASON, provider_context(provider)
        )

        assert [r.id for r in ExtensionService.list_extension_requests(db_session)] == [second.id, pending.id]
        assert [r.id for r in ExtensionService.list_extension_requests(
            db_session, status=ExtensionStatus.PENDING
        )] == [second.id]
        assert ExtensionService.list_extension_requests(db_session, booking_id=999) == []
