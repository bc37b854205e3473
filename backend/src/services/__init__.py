"""
Services package for shared business logic.

This package contains service classes that encapsulate the scheduling and
assignment logic shared across API endpoints.
"""

from .availability_service import AvailabilityService
from .overlap_guard import OverlapGuard
from .allocation_service import AllocationService
from .timeline_service import TimelineService
from .issue_service import IssueService
from .assignment_service import AssignmentService
from .extension_service import ExtensionService
from .weekly_slot_service import WeeklySlotService

__all__ = [
    "AvailabilityService",
    "OverlapGuard",
    "AllocationService",
    "TimelineService",
    "IssueService",
    "AssignmentService",
    "ExtensionService",
    "WeeklySlotService",
]
