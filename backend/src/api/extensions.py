# pyright: reportMissingTypeStubs=false
"""
Time extension API endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from core.constants import MAX_REASON_LENGTH
from core.database import get_db
from auth.dependencies import require_admin, require_authenticated, UserContext
from models import ExtensionStatus
from services.extension_service import ExtensionService
from api.responses import ExtensionRequestListResponse, ExtensionRequestResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class ExtensionCreateRequest(BaseModel):
    """Request model for asking for more time on in-progress work."""
    requested_minutes: int
    reason: str = Field(..., max_length=MAX_REASON_LENGTH)


class ExtensionDecisionRequest(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


@router.post("/bookings/{booking_id}/extensions", summary="Request a time extension",
             status_code=status.HTTP_201_CREATED)
async def request_extension(
    booking_id: int,
    request: ExtensionCreateRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_authenticated)
) -> ExtensionRequestResponse:
    """
    File a pending extension request. Bounds on minutes and reason length are
    enforced by the service so API and internal callers share one rule set.
    """
    extension = ExtensionService.request_extension(
        db, booking_id, request.requested_minutes, request.reason, current_user,
    )
    return ExtensionRequestResponse.from_request(extension)


@router.get("/extensions", summary="List extension requests")
async def list_extension_requests(
    status_filter: Optional[ExtensionStatus] = Query(None, alias="status"),
    booking_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> ExtensionRequestListResponse:
    requests = ExtensionService.list_extension_requests(db, status=status_filter, booking_id=booking_id)
    return ExtensionRequestListResponse(
        extension_requests=[ExtensionRequestResponse.from_request(r) for r in requests]
    )


@router.post("/extensions/{request_id}/approve", summary="Approve an extension request")
async def approve_extension(
    request_id: int,
    request: Optional[ExtensionDecisionRequest] = None,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> ExtensionRequestResponse:
    """Extend the booking's end time. Returns 409 if the extra time is already booked."""
    extension = ExtensionService.approve_extension(
        db, request_id, current_user, admin_notes=request.admin_notes if request else None,
    )
    return ExtensionRequestResponse.from_request(extension)


@router.post("/extensions/{request_id}/reject", summary="Reject an extension request")
async def reject_extension(
    request_id: int,
    request: ExtensionDecisionRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_admin)
) -> ExtensionRequestResponse:
    extension = ExtensionService.reject_extension(db, request_id, current_user, request.admin_notes or "")
    return ExtensionRequestResponse.from_request(extension)
