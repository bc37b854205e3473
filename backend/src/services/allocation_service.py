"""
Greedy multi-day allocation of a work duration across weekly slots.

Starting from a date, the allocator walks forward one calendar day at a time
and takes the earliest contiguous gap it can from each active slot until the
requested duration is covered or the day cap is reached. There is no
backtracking and no optimisation beyond earliest fit.
"""

import logging
from datetime import date as date_type, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from core.config import MAX_ALLOCATION_DAYS
from core.exceptions import InvalidRequestError, NotFoundError
from models import ServiceProvider
from services.availability_service import AvailabilityService
from shared_types.availability import AllocationClaim, AllocationResult
from utils.interval_utils import Interval

logger = logging.getLogger(__name__)


class AllocationService:
    """Service class for proposing multi-slot, multi-day allocations."""

    @staticmethod
    def allocate(
        db: Session,
        provider_id: int,
        start_date: date_type,
        needed_minutes: int,
        max_days: int = MAX_ALLOCATION_DAYS,
        exclude_booking_id: Optional[int] = None
    ) -> AllocationResult:
        """
        Spread ``needed_minutes`` over the provider's slots from ``start_date`` on.

        For each day, active slots are visited in start-time order. A slot with
        free capacity contributes ``min(available, remaining)`` minutes, placed
        at the earliest gap long enough to hold them. If the slot's free time
        is too fragmented for that, the slot is skipped for the day. Claims
        already made on a date are treated as occupied for later slots of the
        same date.

        The result is a proposal only; nothing is persisted. Running out of
        days is not an error: the unplaced remainder is reported as
        ``shortfall_minutes``.

        Args:
            db: Database session
            provider_id: Service provider ID
            start_date: First calendar date to consider
            needed_minutes: Total work duration to place
            max_days: Maximum number of calendar days to walk
            exclude_booking_id: Booking whose own minutes should count as free
                (when re-allocating an existing booking)

        Returns:
            AllocationResult with the claims in chronological order

        Raises:
            InvalidRequestError: If needed_minutes is not positive
            NotFoundError: If the provider does not exist
        """
        if needed_minutes <= 0:
            raise InvalidRequestError(f"needed_minutes must be positive, got {needed_minutes}")

        if not db.get(ServiceProvider, provider_id):
            raise NotFoundError("ServiceProvider", provider_id)

        result = AllocationResult(
            provider_id=provider_id,
            start_date=start_date,
            needed_minutes=needed_minutes,
        )
        remaining = needed_minutes
        current_date = start_date
        claimed_by_date: Dict[date_type, List[Interval]] = {}

        while remaining > 0 and result.days_processed < max_days:
            for slot in AvailabilityService.get_active_slots_for_date(db, provider_id, current_date):
                capacity = AvailabilityService.get_slot_capacity(
                    db, slot, current_date, exclude_booking_id=exclude_booking_id
                )
                if capacity.available_minutes <= 0:
                    continue

                take = min(capacity.available_minutes, remaining)
                placement = AvailabilityService.calculate_next_available_time(
                    db,
                    slot,
                    current_date,
                    take,
                    exclude_booking_id=exclude_booking_id,
                    additional_booked=claimed_by_date.get(current_date),
                )
                if placement is None:
                    continue

                result.claims.append(AllocationClaim(
                    slot_id=slot.id,
                    date=current_date,
                    start=placement.start,
                    end=placement.end,
                    minutes=take,
                ))
                claimed_by_date.setdefault(current_date, []).append(placement.interval)
                remaining -= take

                if remaining == 0:
                    break

            result.days_processed += 1
            current_date += timedelta(days=1)

        if result.is_fulfilled:
            logger.info(
                f"Allocated {needed_minutes} minutes for provider {provider_id} "
                f"in {len(result.claims)} claim(s) over {result.days_processed} day(s)"
            )
        else:
            logger.info(
                f"Allocation for provider {provider_id} short by {result.shortfall_minutes} "
                f"of {needed_minutes} minutes after {result.days_processed} day(s)"
            )
        return result
