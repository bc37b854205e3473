"""
Proof of work attached when a booking is finished.

Only the storage reference is kept here; uploading and serving files is the
job of the media storage collaborator.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, TIMESTAMP, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.enums import ProofStage, ProofType


class Proof(Base):
    __tablename__ = "proofs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), index=True)

    proof_type: Mapped[ProofType] = mapped_column(
        SAEnum(ProofType, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        default=ProofType.PHOTO,
        nullable=False,
    )

    stage: Mapped[ProofStage] = mapped_column(
        SAEnum(ProofStage, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        default=ProofStage.COMPLETION,
        nullable=False,
    )

    file_path: Mapped[str] = mapped_column(String(500))

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="proofs")

    def __repr__(self) -> str:
        return f"<Proof(id={self.id}, booking_id={self.booking_id}, type={self.proof_type}, stage={self.stage})>"
