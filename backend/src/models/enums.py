"""
Closed status vocabularies for issues, bookings, extensions and the timeline.

``ASSIGNMENT_TRANSITIONS`` is the single source of truth for the booking
state machine: a lifecycle action is legal only from the source states listed
here, and always lands on the listed target state.
"""

from enum import Enum
from typing import Dict, FrozenSet, NamedTuple


class AssignmentStatus(str, Enum):
    """Status of a single booking (assignment of an issue to a provider)."""
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    FINISHED = "finished"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AssignmentStatus.COMPLETED, AssignmentStatus.CANCELLED)


class IssueStatus(str, Enum):
    """Status mirror kept on the issue, derived from its bookings."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    FINISHED = "finished"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ExtensionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TimelineAction(str, Enum):
    """Audit actions; one per booking transition plus issue-level events."""
    CREATED = "created"
    ASSIGNED = "assigned"
    ASSIGNMENT_UPDATED = "assignment_updated"
    STARTED = "started"
    HELD = "held"
    RESUMED = "resumed"
    FINISHED = "finished"
    APPROVED = "approved"
    CANCELLED = "cancelled"
    EXTENSION_APPROVED = "extension_approved"
    EXTENSION_REJECTED = "extension_rejected"


class ProofType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    PDF = "pdf"


class ProofStage(str, Enum):
    """When a proof was taken: while the work was under way, or at completion."""
    DURING_WORK = "during_work"
    COMPLETION = "completion"


class LifecycleAction(str, Enum):
    START = "start"
    HOLD = "hold"
    RESUME = "resume"
    FINISH = "finish"
    APPROVE = "approve"
    CANCEL = "cancel"


class Transition(NamedTuple):
    sources: FrozenSet[AssignmentStatus]
    target: AssignmentStatus
    timeline_action: TimelineAction


ASSIGNMENT_TRANSITIONS: Dict[LifecycleAction, Transition] = {
    LifecycleAction.START: Transition(
        frozenset({AssignmentStatus.ASSIGNED}),
        AssignmentStatus.IN_PROGRESS,
        TimelineAction.STARTED,
    ),
    LifecycleAction.HOLD: Transition(
        frozenset({AssignmentStatus.IN_PROGRESS}),
        AssignmentStatus.ON_HOLD,
        TimelineAction.HELD,
    ),
    LifecycleAction.RESUME: Transition(
        frozenset({AssignmentStatus.ON_HOLD}),
        AssignmentStatus.IN_PROGRESS,
        TimelineAction.RESUMED,
    ),
    LifecycleAction.FINISH: Transition(
        frozenset({AssignmentStatus.IN_PROGRESS}),
        AssignmentStatus.FINISHED,
        TimelineAction.FINISHED,
    ),
    LifecycleAction.APPROVE: Transition(
        frozenset({AssignmentStatus.FINISHED}),
        AssignmentStatus.COMPLETED,
        TimelineAction.APPROVED,
    ),
    LifecycleAction.CANCEL: Transition(
        frozenset({AssignmentStatus.ASSIGNED, AssignmentStatus.IN_PROGRESS, AssignmentStatus.ON_HOLD}),
        AssignmentStatus.CANCELLED,
        TimelineAction.CANCELLED,
    ),
}

# Bookings in these states can be moved to another date/range
RESCHEDULABLE_STATUSES = frozenset({AssignmentStatus.ASSIGNED, AssignmentStatus.ON_HOLD})
