# Package initialization
# Import all models to ensure relationships are properly established
from .enums import (
    AssignmentStatus,
    IssueStatus,
    ExtensionStatus,
    TimelineAction,
    ProofType,
    ProofStage,
    LifecycleAction,
    ASSIGNMENT_TRANSITIONS,
)
from .service_provider import ServiceProvider
from .weekly_slot import WeeklySlot
from .issue import Issue
from .booking import Booking
from .proof import Proof
from .booking_consumable import BookingConsumable
from .extension_request import ExtensionRequest
from .timeline_entry import TimelineEntry, TimelineImmutableError

__all__ = [
    "AssignmentStatus",
    "IssueStatus",
    "ExtensionStatus",
    "TimelineAction",
    "ProofType",
    "ProofStage",
    "LifecycleAction",
    "ASSIGNMENT_TRANSITIONS",
    "ServiceProvider",
    "WeeklySlot",
    "Issue",
    "Booking",
    "Proof",
    "BookingConsumable",
    "ExtensionRequest",
    "TimelineEntry",
    "TimelineImmutableError",
]
