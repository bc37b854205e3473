"""
Consumables (parts, materials) reported when a booking is finished.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, TIMESTAMP, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class BookingConsumable(Base):
    """
    One consumable line on a finished booking.

    Either ``consumable_id`` (catalogue item) or ``custom_name`` is set.
    """

    __tablename__ = "booking_consumables"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), index=True)

    consumable_id: Mapped[Optional[int]] = mapped_column(nullable=True)

    custom_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    quantity: Mapped[int] = mapped_column(default=1)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="consumables")

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_booking_consumables_quantity'),
    )

    def __repr__(self) -> str:
        return f"<BookingConsumable(booking_id={self.booking_id}, consumable_id={self.consumable_id}, quantity={self.quantity})>"
