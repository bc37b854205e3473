"""
Shared types used across services.
"""

from .availability import TimeRange, SlotCapacity, AllocationClaim, AllocationResult
from .assignment import ProofUpload, ConsumableUsage

__all__ = [
    "TimeRange",
    "SlotCapacity",
    "AllocationClaim",
    "AllocationResult",
    "ProofUpload",
    "ConsumableUsage",
]
