"""
Issue model representing a tenant's maintenance request.

An issue may receive several bookings over its life (rework, reassignment).
Its ``status`` is a mirror derived from those bookings and is only written by
the services that own booking transitions.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, Boolean, TIMESTAMP, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.enums import IssueStatus


class Issue(Base):
    """Maintenance request filed by a tenant."""

    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    title: Mapped[str] = mapped_column(String(255))

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[IssueStatus] = mapped_column(
        SAEnum(IssueStatus, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e]),
        default=IssueStatus.PENDING,
        nullable=False,
    )

    proof_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Whether providers must attach proof when finishing work on this issue."""

    created_by: Mapped[Optional[int]] = mapped_column(nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    bookings = relationship("Booking", back_populates="issue", order_by="Booking.id")
    timeline = relationship("TimelineEntry", back_populates="issue", order_by="TimelineEntry.id")

    def can_be_assigned(self) -> bool:
        """Closed issues take no new bookings."""
        return self.status not in (IssueStatus.COMPLETED, IssueStatus.CANCELLED)

    def can_be_cancelled(self) -> bool:
        return self.status not in (IssueStatus.COMPLETED, IssueStatus.CANCELLED)

    def __repr__(self) -> str:
        return f"<Issue(id={self.id}, title='{self.title}', status={self.status})>"
