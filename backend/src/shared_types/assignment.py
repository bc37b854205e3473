"""
Inputs attached to a booking when work is finished.
"""

from dataclasses import dataclass
from typing import Optional

from models.enums import ProofType


@dataclass(frozen=True)
class ProofUpload:
    """Reference to an already-stored proof file."""
    file_path: str
    proof_type: ProofType = ProofType.PHOTO


@dataclass(frozen=True)
class ConsumableUsage:
    """A consumable used during the work: a catalogue item or a free-text name."""
    consumable_id: Optional[int] = None
    custom_name: Optional[str] = None
    quantity: int = 1
