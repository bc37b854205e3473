# pyright: reportMissingTypeStubs=false
"""
Availability API endpoints: slot capacity, gap search, allocation proposals
and overlap checks.

All endpoints here are reads; nothing is persisted.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from core.config import MAX_ALLOCATION_DAYS
from core.database import get_db
from core.exceptions import InvalidRequestError, SchedulingError
from auth.dependencies import require_admin, require_authenticated, UserContext
from services.allocation_service import AllocationService
from services.availability_service import AvailabilityService
from services.overlap_guard import OverlapGuard
from utils.datetime_utils import parse_date_string, parse_time_string, format_time
from api.responses import (
    AllocationResponse, NextAvailableResponse, OverlapCheckResponse, SlotCapacityResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class AllocateRequest(BaseModel):
    """Request model for an allocation proposal."""
    start_date: str  # Format: "YYYY-MM-DD"
    needed_minutes: int
    max_days: int = MAX_ALLOCATION_DAYS
    exclude_booking_id: Optional[int] = None

    @field_validator('start_date')
    @classmethod
    def validate_start_date(cls, v: str) -> str:
        parse_date_string(v)
        return v

    @field_validator('max_days')
    @classmethod
    def validate_max_days(cls, v: int) -> int:
        if v < 1 or v > MAX_ALLOCATION_DAYS:
            raise ValueError(f'max_days must be between 1 and {MAX_ALLOCATION_DAYS}')
        return v


class OverlapCheckRequest(BaseModel):
    """
    Request model for an overlap check.

    Give either an exact range (start_time and end_time) or a slot selection
    (slot_ids); the latter uses the combined span of the slots.
    """
    date: str  # Format: "YYYY-MM-DD"
    start_time: Optional[str] = None  # Format: "HH:MM"
    end_time: Optional[str] = None
    slot_ids: List[int] = []
    exclude_booking_id: Optional[int] = None

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        parse_date_string(v)
        return v

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_time_string(v)
        return v


def _parse_date_param(value: str):
    try:
        return parse_date_string(value)
    except ValueError:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail="Invalid date format, expected YYYY-MM-DD"
        )


# ===== Endpoints =====

@router.get("/providers/{provider_id}/slots/{slot_id}/capacity",
            summary="Get slot capacity on a date")
async def get_slot_capacity(
    provider_id: int,
    slot_id: int,
    date: str = Query(..., description="Date in YYYY-MM-DD format"),
    exclude_booking_id: int | None = Query(None, description="Booking to ignore (for rescheduling)"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> SlotCapacityResponse:
    """
    Get total, booked and available minutes of a weekly slot on a date,
    with the remaining free gaps.
    """
    target_date = _parse_date_param(date)
    try:
        slot = AvailabilityService.get_slot_or_404(db, slot_id, provider_id=provider_id)
        capacity = AvailabilityService.get_slot_capacity(db, slot, target_date, exclude_booking_id)
        return SlotCapacityResponse.from_capacity(slot.id, target_date, capacity)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to compute capacity of slot {slot_id}: {e}")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute slot capacity"
        )


@router.get("/providers/{provider_id}/slots/{slot_id}/next-available",
            summary="Find the earliest placement in a slot")
async def get_next_available_time(
    provider_id: int,
    slot_id: int,
    date: str = Query(..., description="Date in YYYY-MM-DD format"),
    duration_minutes: int = Query(..., gt=0, description="Length of the placement in minutes"),
    exclude_booking_id: int | None = Query(None),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> NextAvailableResponse:
    """
    Find the earliest contiguous free range of ``duration_minutes`` in a slot.

    ``available`` is false when no single gap is long enough, even if the
    slot's total free time would be.
    """
    target_date = _parse_date_param(date)
    try:
        slot = AvailabilityService.get_slot_or_404(db, slot_id, provider_id=provider_id)
        placement = AvailabilityService.calculate_next_available_time(
            db, slot, target_date, duration_minutes, exclude_booking_id=exclude_booking_id,
        )
        return NextAvailableResponse(
            slot_id=slot.id,
            date=target_date.isoformat(),
            duration_minutes=duration_minutes,
            available=placement is not None,
            start_time=format_time(placement.start) if placement else None,
            end_time=format_time(placement.end) if placement else None,
        )
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to find next available time in slot {slot_id}: {e}")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to find available time"
        )


@router.post("/providers/{provider_id}/allocate",
             summary="Propose a multi-day allocation")
async def allocate(
    provider_id: int,
    request: AllocateRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> AllocationResponse:
    """
    Spread a work duration greedily over the provider's slots, starting at
    ``start_date``. A shortfall is reported, not raised.
    """
    try:
        result = AllocationService.allocate(
            db,
            provider_id,
            parse_date_string(request.start_date),
            request.needed_minutes,
            max_days=request.max_days,
            exclude_booking_id=request.exclude_booking_id,
        )
        return AllocationResponse.from_result(result)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to allocate for provider {provider_id}: {e}")
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to allocate time"
        )


@router.post("/providers/{provider_id}/overlap-check",
             summary="Check a range or slot selection for double booking")
async def check_overlap(
    provider_id: int,
    request: OverlapCheckRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> OverlapCheckResponse:
    """Check a candidate against every live booking of the provider on the date."""
    target_date = parse_date_string(request.date)
    if request.start_time and request.end_time:
        start = parse_time_string(request.start_time)
        end = parse_time_string(request.end_time)
        if start >= end:
            raise InvalidRequestError("start_time must be before end_time")
        has_overlap = OverlapGuard.has_overlap(
            db,
            provider_id,
            target_date,
            start,
            end,
            exclude_booking_id=request.exclude_booking_id,
        )
    elif request.slot_ids:
        has_overlap = OverlapGuard.has_multi_slot_overlap(
            db, provider_id, target_date, request.slot_ids, exclude_booking_id=request.exclude_booking_id,
        )
    else:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail="Provide start_time and end_time, or slot_ids"
        )

    return OverlapCheckResponse(provider_id=provider_id, date=target_date.isoformat(), has_overlap=has_overlap)
