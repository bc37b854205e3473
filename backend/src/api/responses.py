"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
"""

from datetime import datetime, date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from models import Booking, ExtensionRequest, Proof, TimelineEntry
from shared_types.availability import AllocationResult, SlotCapacity, TimeRange
from utils.datetime_utils import format_time


class TimeRangeResponse(BaseModel):
    """Response model for a time-of-day range."""
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    duration_minutes: int

    @classmethod
    def from_range(cls, time_range: TimeRange) -> "TimeRangeResponse":
        return cls(
            start_time=format_time(time_range.start),
            end_time=format_time(time_range.end),
            duration_minutes=time_range.minutes,
        )


class SlotCapacityResponse(BaseModel):
    """Response model for slot capacity on a date."""
    slot_id: int
    date: str
    total_minutes: int
    booked_minutes: int
    available_minutes: int
    has_capacity: bool
    gaps: List[TimeRangeResponse]

    @classmethod
    def from_capacity(cls, slot_id: int, date_value: date, capacity: SlotCapacity) -> "SlotCapacityResponse":
        return cls(
            slot_id=slot_id,
            date=date_value.isoformat(),
            total_minutes=capacity.total_minutes,
            booked_minutes=capacity.booked_minutes,
            available_minutes=capacity.available_minutes,
            has_capacity=capacity.has_capacity,
            gaps=[TimeRangeResponse.from_range(gap) for gap in capacity.gaps],
        )


class NextAvailableResponse(BaseModel):
    """Response model for the earliest contiguous placement in a slot."""
    slot_id: int
    date: str
    duration_minutes: int
    available: bool
    start_time: Optional[str] = None  # None when no single gap fits
    end_time: Optional[str] = None


class AllocationClaimResponse(BaseModel):
    slot_id: int
    date: str
    start_time: str
    end_time: str
    minutes: int


class AllocationResponse(BaseModel):
    """Response model for a greedy allocation proposal."""
    provider_id: int
    start_date: str
    end_date: Optional[str] = None
    needed_minutes: int
    fulfilled_minutes: int
    shortfall_minutes: int
    days_processed: int
    is_fulfilled: bool
    spans_multiple_days: bool
    slot_ids: List[int]
    display_start: Optional[str] = None
    display_end: Optional[str] = None
    claims: List[AllocationClaimResponse]

    @classmethod
    def from_result(cls, result: AllocationResult) -> "AllocationResponse":
        display = result.display_range
        return cls(
            provider_id=result.provider_id,
            start_date=result.start_date.isoformat(),
            end_date=result.end_date.isoformat() if result.end_date else None,
            needed_minutes=result.needed_minutes,
            fulfilled_minutes=result.fulfilled_minutes,
            shortfall_minutes=result.shortfall_minutes,
            days_processed=result.days_processed,
            is_fulfilled=result.is_fulfilled,
            spans_multiple_days=result.spans_multiple_days,
            slot_ids=result.slot_ids,
            display_start=format_time(display.start) if display else None,
            display_end=format_time(display.end) if display else None,
            claims=[
                AllocationClaimResponse(
                    slot_id=claim.slot_id,
                    date=claim.date.isoformat(),
                    start_time=format_time(claim.start),
                    end_time=format_time(claim.end),
                    minutes=claim.minutes,
                )
                for claim in result.claims
            ],
        )


class OverlapCheckResponse(BaseModel):
    """Response model for an overlap check."""
    provider_id: int
    date: str
    has_overlap: bool


class BookingResponse(BaseModel):
    """Response model for booking information."""
    id: int
    issue_id: int
    provider_id: int
    status: str
    scheduled_date: date
    scheduled_end_date: Optional[date] = None
    claimed_slot_ids: List[int]
    assigned_start_time: Optional[str] = None
    assigned_end_time: Optional[str] = None
    allocated_duration_minutes: Optional[int] = None
    total_approved_extension_minutes: int = 0
    duration_minutes: Optional[int] = None
    overtime_minutes: Optional[int] = None
    proof_required: bool
    notes: Optional[str] = None
    issue_status: Optional[str] = None
    started_at: Optional[datetime] = None
    held_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            issue_id=booking.issue_id,
            provider_id=booking.provider_id,
            status=booking.status.value,
            scheduled_date=booking.scheduled_date,
            scheduled_end_date=booking.scheduled_end_date,
            claimed_slot_ids=list(booking.claimed_slot_ids or []),
            assigned_start_time=format_time(booking.assigned_start_time) if booking.assigned_start_time else None,
            assigned_end_time=format_time(booking.assigned_end_time) if booking.assigned_end_time else None,
            allocated_duration_minutes=booking.allocated_duration_minutes,
            total_approved_extension_minutes=booking.total_approved_extension_minutes,
            duration_minutes=booking.duration_minutes,
            overtime_minutes=booking.overtime_minutes,
            proof_required=booking.proof_required,
            notes=booking.notes,
            issue_status=booking.issue.status.value if booking.issue else None,
            started_at=booking.started_at,
            held_at=booking.held_at,
            resumed_at=booking.resumed_at,
            finished_at=booking.finished_at,
            completed_at=booking.completed_at,
            cancelled_at=booking.cancelled_at,
        )


class ProofResponse(BaseModel):
    id: int
    booking_id: int
    proof_type: str
    stage: str
    file_path: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_proof(cls, proof: Proof) -> "ProofResponse":
        return cls(
            id=proof.id,
            booking_id=proof.booking_id,
            proof_type=proof.proof_type.value,
            stage=proof.stage.value,
            file_path=proof.file_path,
            created_at=proof.created_at,
        )


class IssueResponse(BaseModel):
    id: int
    title: str
    status: str
    proof_required: bool


class ExtensionRequestResponse(BaseModel):
    """Response model for a time extension request."""
    id: int
    booking_id: int
    requested_minutes: int
    status: str
    reason: str
    admin_notes: Optional[str] = None
    requester_id: Optional[int] = None
    responder_id: Optional[int] = None
    requested_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    @classmethod
    def from_request(cls, extension: ExtensionRequest) -> "ExtensionRequestResponse":
        return cls(
            id=extension.id,
            booking_id=extension.booking_id,
            requested_minutes=extension.requested_minutes,
            status=extension.status.value,
            reason=extension.reason,
            admin_notes=extension.admin_notes,
            requester_id=extension.requester_id,
            responder_id=extension.responder_id,
            requested_at=extension.requested_at,
            responded_at=extension.responded_at,
        )


class ExtensionRequestListResponse(BaseModel):
    """Response model for listing extension requests."""
    extension_requests: List[ExtensionRequestResponse]


class TimelineEntryResponse(BaseModel):
    id: int
    issue_id: int
    booking_id: Optional[int] = None
    action: str
    performed_by: Optional[int] = None
    notes: Optional[str] = None
    metadata: Dict[str, Any]
    created_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, entry: TimelineEntry) -> "TimelineEntryResponse":
        return cls(
            id=entry.id,
            issue_id=entry.issue_id,
            booking_id=entry.booking_id,
            action=entry.action.value,
            performed_by=entry.performed_by,
            notes=entry.notes,
            metadata=entry.metadata_ or {},
            created_at=entry.created_at,
        )


class TimelineResponse(BaseModel):
    """Response model for an issue's timeline."""
    issue_id: int
    entries: List[TimelineEntryResponse]
