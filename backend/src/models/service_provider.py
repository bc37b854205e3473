"""
Service provider model.

A service provider is the technician (or contractor) who works assigned
maintenance bookings inside their weekly availability windows. The provider
row doubles as the lock target for any write that changes a booking's time
range, so that overlap checks for one provider are serialized.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class ServiceProvider(Base):
    """Technician who receives bookings."""

    __tablename__ = "service_providers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    user_id: Mapped[Optional[int]] = mapped_column(nullable=True, index=True)
    """Identity of the login account acting as this provider (actor context user_id)."""

    name: Mapped[str] = mapped_column(String(255))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    weekly_slots = relationship("WeeklySlot", back_populates="provider", order_by="WeeklySlot.start_time")
    bookings = relationship("Booking", back_populates="provider")

    def __repr__(self) -> str:
        return f"<ServiceProvider(id={self.id}, name='{self.name}')>"
