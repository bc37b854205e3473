"""
Time extension request model.

A provider who needs more time on in-progress work files a request; an
approver either approves it (extending the booking's end time after an
overlap re-check) or rejects it with a written reason.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, TIMESTAMP, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.enums import ExtensionStatus


class ExtensionRequest(Base):
    __tablename__ = "extension_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"))

    requested_minutes: Mapped[int] = mapped_column()

    status: Mapped[ExtensionStatus] = mapped_column(
        SAEnum(ExtensionStatus, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        default=ExtensionStatus.PENDING,
        nullable=False,
    )

    requester_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    responder_id: Mapped[Optional[int]] = mapped_column(nullable=True)

    reason: Mapped[str] = mapped_column(String(1000))

    admin_notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    requested_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="extension_requests")

    __table_args__ = (
        Index('idx_extension_requests_booking_status', 'booking_id', 'status'),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ExtensionStatus.PENDING

    def __repr__(self) -> str:
        return f"<ExtensionRequest(id={self.id}, booking_id={self.booking_id}, minutes={self.requested_minutes}, status={self.status})>"
