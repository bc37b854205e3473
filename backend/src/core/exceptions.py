"""
Domain exceptions raised by the scheduling and assignment services.

Every exception carries a human-readable ``message`` and a stable ``code``
so the HTTP layer can translate it without inspecting the text. None of these
are retried by the services; a conflict is a business fact, and the caller
must re-query fresh availability before trying again.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all domain errors raised by the scheduling core."""

    code = "scheduling_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(SchedulingError):
    """Referenced slot, booking, issue or request does not exist (or is not the actor's)."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})


class InvalidTransitionError(SchedulingError):
    """Lifecycle method called while the booking is not in the required state."""

    code = "invalid_transition"

    def __init__(self, booking_id: int, current_status: str, action: str):
        self.booking_id = booking_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} booking {booking_id} while it is {current_status}",
            {"booking_id": booking_id, "current_status": current_status, "action": action},
        )


class ProofRequiredError(SchedulingError):
    """Finishing a booking that requires proof without supplying any."""

    code = "proof_required"

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(
            f"Booking {booking_id} requires at least one proof to finish",
            {"booking_id": booking_id},
        )


class CapacityConflictError(SchedulingError):
    """Commit-time overlap with another booking of the same provider."""

    code = "capacity_conflict"


class InvalidRequestError(SchedulingError):
    """Input violates a business rule (bounds, ownership, window containment)."""

    code = "invalid_request"


class PermissionDeniedError(SchedulingError):
    """Actor lacks the authority required for the operation."""

    code = "permission_denied"
