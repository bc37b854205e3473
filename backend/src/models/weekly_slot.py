"""
Weekly slot model for recurring provider availability.

Each record is one working window for a specific day of the week. Multiple
windows per day are allowed (e.g. 08:00-12:00 and 13:00-17:00). Slots are
deactivated rather than deleted, since bookings keep referencing their ids.
"""

from datetime import time, datetime
from typing import Optional
from sqlalchemy import Time, TIMESTAMP, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from utils.datetime_utils import day_name as weekday_name, format_time
from utils.interval_utils import Interval, interval_from_times


class WeeklySlot(Base):
    """
    Recurring availability template for one provider.

    The window ``[start_time, end_time)`` applies to every calendar date
    whose weekday equals ``day_of_week``.
    """

    __tablename__ = "weekly_slots"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    provider_id: Mapped[int] = mapped_column(ForeignKey("service_providers.id"))
    """Reference to the service provider."""

    day_of_week: Mapped[int] = mapped_column()
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday)."""

    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Logical deactivation flag; inactive slots are never offered for allocation."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    provider = relationship("ServiceProvider", back_populates="weekly_slots")

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_weekly_slots_time_order'),
        CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_weekly_slots_day_of_week'),
        Index('idx_weekly_slots_provider_day', 'provider_id', 'day_of_week'),
        Index('idx_weekly_slots_provider_day_time', 'provider_id', 'day_of_week', 'start_time'),
    )

    @property
    def window(self) -> Interval:
        """The slot window in minutes-of-day."""
        return interval_from_times(self.start_time, self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.window.minutes

    @property
    def day_name(self) -> str:
        return weekday_name(self.day_of_week)

    @property
    def formatted_time_range(self) -> str:
        """e.g. 'Monday 09:00-17:00'."""
        return f"{self.day_name} {format_time(self.start_time)}-{format_time(self.end_time)}"

    def __repr__(self) -> str:
        return f"<WeeklySlot(provider_id={self.provider_id}, day={self.day_name}, {self.start_time}-{self.end_time})>"
