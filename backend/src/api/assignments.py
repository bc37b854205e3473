# pyright: reportMissingTypeStubs=false
"""
Issue and booking API endpoints: assignment commits and the booking lifecycle.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from core.constants import MAX_NOTES_LENGTH, MAX_REASON_LENGTH, MAX_STRING_LENGTH
from core.database import get_db
from auth.dependencies import require_admin, require_authenticated, UserContext
from models import ProofType
from services.allocation_service import AllocationService
from services.assignment_service import AssignmentService
from services.issue_service import IssueService
from services.timeline_service import TimelineService
from shared_types.assignment import ConsumableUsage, ProofUpload
from utils.datetime_utils import parse_date_string, parse_time_string
from api.responses import (
    BookingResponse, IssueResponse, ProofResponse, TimelineEntryResponse, TimelineResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class IssueCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_STRING_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    proof_required: bool = False


class IssueCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class AssignRequest(BaseModel):
    """Request model for assigning an issue to a provider."""
    provider_id: int
    scheduled_date: str  # Format: "YYYY-MM-DD"
    slot_ids: List[int]
    start_time: Optional[str] = None  # Format: "HH:MM"; defaults to the claimed slots' span
    end_time: Optional[str] = None
    scheduled_end_date: Optional[str] = None
    allocated_duration_minutes: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator('scheduled_date', 'scheduled_end_date')
    @classmethod
    def validate_date(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_date_string(v)
        return v

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_time_string(v)
        return v


class AutoAssignRequest(BaseModel):
    """Request model for allocate-then-assign."""
    provider_id: int
    start_date: str
    needed_minutes: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator('start_date')
    @classmethod
    def validate_start_date(cls, v: str) -> str:
        parse_date_string(v)
        return v


class RescheduleRequest(BaseModel):
    scheduled_date: str
    slot_ids: List[int]
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    scheduled_end_date: Optional[str] = None

    @field_validator('scheduled_date', 'scheduled_end_date')
    @classmethod
    def validate_date(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_date_string(v)
        return v

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_time_string(v)
        return v


class ReasonRequest(BaseModel):
    """Optional free-text reason for hold/cancel/approve."""
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class ProofItem(BaseModel):
    file_path: str = Field(..., min_length=1, max_length=500)
    proof_type: ProofType = ProofType.PHOTO


class ConsumableItem(BaseModel):
    consumable_id: Optional[int] = None
    custom_name: Optional[str] = Field(None, max_length=MAX_STRING_LENGTH)
    quantity: int = Field(1, ge=1)


class FinishWorkRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    proofs: List[ProofItem] = []
    consumables: List[ConsumableItem] = []


def _optional_date(value: Optional[str]):
    return parse_date_string(value) if value else None


def _optional_time(value: Optional[str]):
    return parse_time_string(value) if value else None


# ===== Issue endpoints =====

@router.post("/issues", summary="Create an issue", status_code=status.HTTP_201_CREATED)
async def create_issue(
    request: IssueCreateRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> IssueResponse:
    issue = IssueService.create_issue(
        db,
        request.title,
        description=request.description,
        proof_required=request.proof_required,
        created_by=current_user.user_id,
    )
    return IssueResponse(id=issue.id, title=issue.title, status=issue.status.value, proof_required=issue.proof_required)


@router.post("/issues/{issue_id}/cancel", summary="Cancel an issue and its active bookings")
async def cancel_issue(
    issue_id: int,
    request: Optional[IssueCancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> IssueResponse:
    issue = IssueService.cancel_issue(db, issue_id, current_user, reason=request.reason if request else None)
    return IssueResponse(id=issue.id, title=issue.title, status=issue.status.value, proof_required=issue.proof_required)


@router.post("/issues/{issue_id}/assign", summary="Assign an issue to a provider",
             status_code=status.HTTP_201_CREATED)
async def assign_issue(
    issue_id: int,
    request: AssignRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> BookingResponse:
    """
    Commit a new booking. The range is re-checked against every live booking
    of the provider under a row lock; a conflict returns 409.
    """
    booking = AssignmentService.assign(
        db,
        issue_id,
        request.provider_id,
        parse_date_string(request.scheduled_date),
        request.slot_ids,
        current_user,
        start_time=_optional_time(request.start_time),
        end_time=_optional_time(request.end_time),
        scheduled_end_date=_optional_date(request.scheduled_end_date),
        allocated_duration_minutes=request.allocated_duration_minutes,
        notes=request.notes,
    )
    return BookingResponse.from_booking(booking)


@router.post("/issues/{issue_id}/auto-assign", summary="Allocate a duration and assign it",
             status_code=status.HTTP_201_CREATED)
async def auto_assign_issue(
    issue_id: int,
    request: AutoAssignRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> BookingResponse:
    """Run the greedy allocator and commit its proposal. A shortfall is refused with 422."""
    allocation = AllocationService.allocate(
        db, request.provider_id, parse_date_string(request.start_date), request.needed_minutes,
    )
    booking = AssignmentService.assign_from_allocation(
        db, issue_id, allocation, current_user, notes=request.notes,
    )
    return BookingResponse.from_booking(booking)


@router.get("/issues/{issue_id}/timeline", summary="Get an issue's timeline")
async def get_issue_timeline(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> TimelineResponse:
    IssueService.get_issue_or_404(db, issue_id)
    entries = TimelineService.list_for_issue(db, issue_id)
    return TimelineResponse(issue_id=issue_id, entries=[TimelineEntryResponse.from_entry(e) for e in entries])


# ===== Booking lifecycle endpoints =====

@router.post("/bookings/{booking_id}/start", summary="Start work")
async def start_work(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> BookingResponse:
    booking = AssignmentService.start_work(db, booking_id, current_user)
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_id}/hold", summary="Put work on hold")
async def hold_work(
    booking_id: int,
    request: Optional[ReasonRequest] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> BookingResponse:
    booking = AssignmentService.hold_work(db, booking_id, current_user, reason=request.reason if request else None)
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_id}/resume", summary="Resume held work")
async def resume_work(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> BookingResponse:
    booking = AssignmentService.resume_work(db, booking_id, current_user)
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_id}/finish", summary="Finish work")
async def finish_work(
    booking_id: int,
    request: FinishWorkRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> BookingResponse:
    """Finish work, attaching proof references and consumables."""
    booking = AssignmentService.finish_work(
        db,
        booking_id,
        current_user,
        notes=request.notes,
        proofs=[ProofUpload(file_path=p.file_path, proof_type=p.proof_type) for p in request.proofs],
        consumables=[
            ConsumableUsage(consumable_id=c.consumable_id, custom_name=c.custom_name, quantity=c.quantity)
            for c in request.consumables
        ],
    )
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_id}/proofs", summary="Attach a during-work proof",
             status_code=status.HTTP_201_CREATED)
async def add_progress_proof(
    booking_id: int,
    request: ProofItem,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> ProofResponse:
    proof = AssignmentService.add_progress_proof(
        db, booking_id, current_user, ProofUpload(file_path=request.file_path, proof_type=request.proof_type),
    )
    return ProofResponse.from_proof(proof)


@router.post("/bookings/{booking_id}/approve", summary="Approve finished work")
async def approve_work(
    booking_id: int,
    request: Optional[ReasonRequest] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> BookingResponse:
    booking = AssignmentService.approve_work(db, booking_id, current_user, notes=request.reason if request else None)
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_id}/cancel", summary="Cancel a booking")
async def cancel_work(
    booking_id: int,
    request: Optional[ReasonRequest] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> BookingResponse:
    booking = AssignmentService.cancel_work(db, booking_id, current_user, reason=request.reason if request else None)
    return BookingResponse.from_booking(booking)


@router.put("/bookings/{booking_id}/schedule", summary="Reschedule a booking")
async def reschedule_booking(
    booking_id: int,
    request: RescheduleRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> BookingResponse:
    booking = AssignmentService.reschedule(
        db,
        booking_id,
        current_user,
        parse_date_string(request.scheduled_date),
        request.slot_ids,
        start_time=_optional_time(request.start_time),
        end_time=_optional_time(request.end_time),
        scheduled_end_date=_optional_date(request.scheduled_end_date),
    )
    return BookingResponse.from_booking(booking)
