"""
Provider-wide double-booking checks.

These checks look at every non-cancelled booking of a provider on a date,
regardless of which weekly slots the bookings claim. They back the global
disjointness invariant: for one provider and date, no two live bookings may
share a minute.
"""

import logging
from datetime import date as date_type, time
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import Booking, ServiceProvider, WeeklySlot, AssignmentStatus
from utils.interval_utils import Interval, envelope, interval_from_times, intervals_overlap

logger = logging.getLogger(__name__)


class OverlapGuard:
    """
    Overlap checks used before committing a booking range.

    The checks are plain reads. Callers that act on the answer must first take
    ``lock_provider_schedule`` in the same transaction so the answer cannot go
    stale before their write.
    """

    @staticmethod
    def get_live_bookings(
        db: Session,
        provider_id: int,
        date: date_type,
        exclude_booking_id: Optional[int] = None
    ) -> List[Booking]:
        """
        Fetch non-cancelled bookings with a time range for a provider on a date.

        Args:
            db: Database session
            provider_id: Service provider ID
            date: Calendar date
            exclude_booking_id: Booking to leave out (the one being edited)

        Returns:
            Bookings ordered by assigned start time
        """
        query = db.query(Booking).filter(
            Booking.provider_id == provider_id,
            Booking.scheduled_date == date,
            Booking.status != AssignmentStatus.CANCELLED,
            Booking.assigned_start_time.isnot(None),
            Booking.assigned_end_time.isnot(None),
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.order_by(Booking.assigned_start_time, Booking.id).all()

    @staticmethod
    def find_conflicts(
        db: Session,
        provider_id: int,
        date: date_type,
        candidate: Interval,
        exclude_booking_id: Optional[int] = None
    ) -> List[Booking]:
        """Bookings whose range intersects the candidate interval."""
        return [
            booking
            for booking in OverlapGuard.get_live_bookings(db, provider_id, date, exclude_booking_id)
            if booking.time_range is not None and intervals_overlap(booking.time_range, candidate)
        ]

    @staticmethod
    def has_overlap(
        db: Session,
        provider_id: int,
        date: date_type,
        start: time,
        end: time,
        exclude_booking_id: Optional[int] = None
    ) -> bool:
        """
        Check whether ``[start, end)`` intersects any live booking of the provider.

        Args:
            db: Database session
            provider_id: Service provider ID
            date: Calendar date of the candidate range
            start: Candidate start time
            end: Candidate end time
            exclude_booking_id: Booking to ignore (the one being edited or extended)

        Returns:
            True if there is a conflict, False otherwise
        """
        candidate = interval_from_times(start, end)
        conflicts = OverlapGuard.find_conflicts(db, provider_id, date, candidate, exclude_booking_id)
        if conflicts:
            logger.debug(
                f"Overlap for provider {provider_id} on {date} {start}-{end}: "
                f"bookings {[b.id for b in conflicts]}"
            )
        return bool(conflicts)

    @staticmethod
    def has_multi_slot_overlap(
        db: Session,
        provider_id: int,
        date: date_type,
        slot_ids: Sequence[int],
        exclude_booking_id: Optional[int] = None
    ) -> bool:
        """
        Conservative pre-commit check for a candidate multi-slot selection.

        Flags any live booking of the provider on ``date`` that intersects the
        combined span of the selected slots (earliest slot start to latest
        slot end), even if the exact minutes eventually assigned would not
        collide. Use it to short-circuit before the gap search; the precise
        check is ``has_overlap``.

        Args:
            db: Database session
            provider_id: Service provider ID
            date: Calendar date
            slot_ids: Candidate WeeklySlot ids
            exclude_booking_id: Booking to ignore

        Returns:
            True if any live booking intersects the combined span

        Raises:
            NotFoundError: If a slot does not exist or belongs to another provider
        """
        if not slot_ids:
            return False

        unique_ids = list(dict.fromkeys(slot_ids))
        slots = db.query(WeeklySlot).filter(
            WeeklySlot.id.in_(unique_ids),
            WeeklySlot.provider_id == provider_id,
        ).all()
        owned = {slot.id for slot in slots}
        for slot_id in unique_ids:
            if slot_id not in owned:
                raise NotFoundError("WeeklySlot", slot_id)

        span = envelope(slot.window for slot in slots)
        if span is None:
            return False

        return bool(OverlapGuard.find_conflicts(db, provider_id, date, span, exclude_booking_id))

    @staticmethod
    def lock_provider_schedule(db: Session, provider_id: int) -> ServiceProvider:
        """
        Take a row lock on the provider for the rest of the transaction.

        Every write that sets or moves a booking range calls this before its
        final overlap re-check, serializing check-then-act per provider.

        Raises:
            NotFoundError: If the provider does not exist
        """
        provider = db.query(ServiceProvider).filter(
            ServiceProvider.id == provider_id
        ).with_for_update().first()
        if not provider:
            raise NotFoundError("ServiceProvider", provider_id)
        return provider
