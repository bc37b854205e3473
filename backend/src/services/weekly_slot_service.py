"""
Weekly slot service for managing a provider's recurring availability.
"""

import logging
from datetime import time
from typing import List

from sqlalchemy.orm import Session

from core.exceptions import InvalidRequestError, NotFoundError
from models import ServiceProvider, WeeklySlot
from utils.datetime_utils import format_time

logger = logging.getLogger(__name__)


class WeeklySlotService:
    """Service class for weekly slot templates."""

    @staticmethod
    def create_slot(
        db: Session,
        provider_id: int,
        day_of_week: int,
        start_time: time,
        end_time: time
    ) -> WeeklySlot:
        """
        Add an availability window to a provider's weekly template.

        Args:
            db: Database session
            provider_id: Service provider ID
            day_of_week: 0=Monday ... 6=Sunday
            start_time: Window start
            end_time: Window end (exclusive)

        Returns:
            The new WeeklySlot

        Raises:
            NotFoundError: If the provider does not exist
            InvalidRequestError: If the day or times are invalid
        """
        if not 0 <= day_of_week <= 6:
            raise InvalidRequestError(f"day_of_week must be between 0 and 6, got {day_of_week}")
        if start_time >= end_time:
            raise InvalidRequestError(
                f"Slot start {format_time(start_time)} must be before end {format_time(end_time)}"
            )
        if not db.get(ServiceProvider, provider_id):
            raise NotFoundError("ServiceProvider", provider_id)

        slot = WeeklySlot(
            provider_id=provider_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_active=True,
        )
        db.add(slot)
        db.commit()
        logger.info(f"Created weekly slot {slot.id} for provider {provider_id}: {slot.formatted_time_range}")
        return slot

    @staticmethod
    def deactivate_slot(db: Session, slot_id: int) -> WeeklySlot:
        """
        Stop offering a slot. Existing bookings keep referencing it.

        Raises:
            NotFoundError: If the slot does not exist
        """
        slot = db.get(WeeklySlot, slot_id)
        if not slot:
            raise NotFoundError("WeeklySlot", slot_id)
        if slot.is_active:
            slot.is_active = False
            db.commit()
            logger.info(f"Deactivated weekly slot {slot_id}")
        return slot

    @staticmethod
    def get_active_slots_for_day(db: Session, provider_id: int, day_of_week: int) -> List[WeeklySlot]:
        """Active slots of a provider on a weekday, ordered by start time."""
        return db.query(WeeklySlot).filter(
            WeeklySlot.provider_id == provider_id,
            WeeklySlot.day_of_week == day_of_week,
            WeeklySlot.is_active == True,  # noqa: E712
        ).order_by(WeeklySlot.start_time, WeeklySlot.id).all()
