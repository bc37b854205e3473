"""
Availability service for slot capacity and gap search.

Turns a provider's recurring weekly slots into concrete capacity on a
calendar date: how many minutes of a slot are already booked, which free
gaps remain, and where the earliest contiguous placement of a given length
would start. All methods are pure reads and take no locks.
"""

import logging
from datetime import date as date_type
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from core.exceptions import InvalidRequestError, NotFoundError
from models import Booking, WeeklySlot
from services.overlap_guard import OverlapGuard
from services.weekly_slot_service import WeeklySlotService
from shared_types.availability import SlotCapacity, TimeRange
from utils.interval_utils import (
    Interval, clip_interval, find_gaps, merge_intervals, total_minutes,
)

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Service class for slot capacity calculations.

    Capacity is per slot: only bookings that claim the slot count against
    it. Provider-wide double booking is the job of ``OverlapGuard``.
    """

    @staticmethod
    def get_slot_or_404(db: Session, slot_id: int, provider_id: Optional[int] = None) -> WeeklySlot:
        """
        Load a weekly slot, optionally checking that it belongs to a provider.

        Raises:
            NotFoundError: If the slot does not exist or belongs to another provider
        """
        slot = db.get(WeeklySlot, slot_id)
        if not slot or (provider_id is not None and slot.provider_id != provider_id):
            raise NotFoundError("WeeklySlot", slot_id)
        return slot

    @staticmethod
    def get_active_slots_for_date(db: Session, provider_id: int, date: date_type) -> List[WeeklySlot]:
        """Active slots of a provider whose weekday matches ``date``, ordered by start time."""
        return WeeklySlotService.get_active_slots_for_day(db, provider_id, date.weekday())

    @staticmethod
    def get_existing_bookings(
        db: Session,
        provider_id: int,
        date: date_type,
        slot_id: Optional[int] = None,
        exclude_booking_id: Optional[int] = None
    ) -> List[Booking]:
        """
        Fetch non-cancelled bookings with a time range for a provider on a date.

        Args:
            db: Database session
            provider_id: Service provider ID
            date: Calendar date
            slot_id: When given, keep only bookings that claim this slot
            exclude_booking_id: Booking to leave out

        Returns:
            List of bookings
        """
        bookings = OverlapGuard.get_live_bookings(db, provider_id, date, exclude_booking_id)

        # claimed_slot_ids is a JSON list; filtering it in SQL is dialect specific
        if slot_id is not None:
            bookings = [b for b in bookings if b.claims_slot(slot_id)]
        return bookings

    @staticmethod
    def _booked_intervals(
        db: Session,
        slot: WeeklySlot,
        date: date_type,
        exclude_booking_id: Optional[int] = None
    ) -> List[Interval]:
        """Booked ranges counting against ``slot``, clipped to its window and merged."""
        window = slot.window
        clipped: List[Interval] = []
        for booking in AvailabilityService.get_existing_bookings(
            db, slot.provider_id, date, slot_id=slot.id, exclude_booking_id=exclude_booking_id
        ):
            booked = booking.time_range
            if booked is None:
                continue
            part = clip_interval(booked, window)
            if part is not None:
                clipped.append(part)
        return merge_intervals(clipped)

    @staticmethod
    def get_slot_capacity(
        db: Session,
        slot: WeeklySlot,
        date: date_type,
        exclude_booking_id: Optional[int] = None
    ) -> SlotCapacity:
        """
        Calculate total, booked and available minutes of a slot on a date.

        Bookings are clipped to the slot window and merged before summing, so
        overlapping or partially-outside bookings never count twice and
        ``booked_minutes + available_minutes == total_minutes``.

        Args:
            db: Database session
            slot: Weekly slot
            date: Calendar date (its weekday is expected to match the slot)
            exclude_booking_id: Booking to ignore (e.g. the one being rescheduled)

        Returns:
            SlotCapacity including the free gaps
        """
        window = slot.window
        booked = AvailabilityService._booked_intervals(db, slot, date, exclude_booking_id)
        total = window.minutes
        booked_minutes = min(total, total_minutes(booked))

        return SlotCapacity(
            total_minutes=total,
            booked_minutes=booked_minutes,
            available_minutes=max(0, total - booked_minutes),
            gaps=[TimeRange.from_interval(gap) for gap in find_gaps(window, booked)],
        )

    @staticmethod
    def find_available_gaps(
        db: Session,
        slot: WeeklySlot,
        date: date_type,
        exclude_booking_id: Optional[int] = None
    ) -> List[TimeRange]:
        """Free sub-ranges of the slot window on ``date`` in chronological order."""
        booked = AvailabilityService._booked_intervals(db, slot, date, exclude_booking_id)
        return [TimeRange.from_interval(gap) for gap in find_gaps(slot.window, booked)]

    @staticmethod
    def calculate_next_available_time(
        db: Session,
        slot: WeeklySlot,
        date: date_type,
        needed_minutes: int,
        exclude_booking_id: Optional[int] = None,
        additional_booked: Optional[Iterable[Interval]] = None
    ) -> Optional[TimeRange]:
        """
        Find the earliest contiguous placement of ``needed_minutes`` in a slot.

        Fragmented capacity does not help: if no single gap is long enough the
        result is None, even when the aggregate free time would suffice.

        Args:
            db: Database session
            slot: Weekly slot
            date: Calendar date
            needed_minutes: Length of the placement
            exclude_booking_id: Booking to ignore
            additional_booked: Extra ranges to treat as occupied (claims not yet
                committed, e.g. earlier claims of the same allocation run)

        Returns:
            TimeRange starting at the gap start and exactly ``needed_minutes`` long,
            or None if no gap fits

        Raises:
            InvalidRequestError: If needed_minutes is not positive
        """
        if needed_minutes <= 0:
            raise InvalidRequestError(f"needed_minutes must be positive, got {needed_minutes}")

        booked = AvailabilityService._booked_intervals(db, slot, date, exclude_booking_id)
        if additional_booked:
            booked = booked + list(additional_booked)

        for gap in find_gaps(slot.window, booked):
            if gap.minutes >= needed_minutes:
                return TimeRange.from_interval(Interval(gap.start, gap.start + needed_minutes))

        logger.debug(
            f"No {needed_minutes}-minute gap in slot {slot.id} on {date}"
        )
        return None

    @staticmethod
    def get_multi_slot_capacity(
        db: Session,
        slots: Iterable[WeeklySlot],
        date: date_type,
        exclude_booking_id: Optional[int] = None
    ) -> SlotCapacity:
        """
        Sum the capacities of several slots on one date.

        Gaps of all slots are concatenated in slot order.
        """
        combined = SlotCapacity(total_minutes=0, booked_minutes=0, available_minutes=0)
        for slot in slots:
            capacity = AvailabilityService.get_slot_capacity(db, slot, date, exclude_booking_id)
            combined.total_minutes += capacity.total_minutes
            combined.booked_minutes += capacity.booked_minutes
            combined.available_minutes += capacity.available_minutes
            combined.gaps.extend(capacity.gaps)
        return combined
