"""
Unit tests for slot capacity and gap search.

Covers the single-slot scenarios (empty slot, one booking, fragmented slot,
fully booked slot) plus capacity conservation and no-phantom-placement
properties.
"""

import pytest
from datetime import time

from hypothesis import given, settings, strategies as st

from core.exceptions import InvalidRequestError, NotFoundError
from models import AssignmentStatus
from services.availability_service import AvailabilityService
from shared_types.availability import TimeRange
from utils.interval_utils import Interval, intervals_overlap, minutes_to_time
from tests.conftest import MONDAY, create_booking, create_provider, create_slot, fresh_session


@pytest.fixture
def provider(db_session):
    return create_provider(db_session)


@pytest.fixture
def slot(db_session, provider):
    """Monday 09:00-17:00 (480 minutes)."""
    return create_slot(db_session, provider, 0, time(9, 0), time(17, 0))


class TestSlotCapacity:
    """Capacity of a single slot on a date."""

    def test_empty_slot(self, db_session, slot):
        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.total_minutes == 480
        assert capacity.booked_minutes == 0
        assert capacity.available_minutes == 480
        assert capacity.has_capacity
        assert capacity.gaps == [TimeRange(time(9, 0), time(17, 0))]

    def test_one_booking(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, time(10, 0), time(11, 0), [slot.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert (capacity.total_minutes, capacity.booked_minutes, capacity.available_minutes) == (480, 60, 420)
        assert capacity.gaps == [
            TimeRange(time(9, 0), time(10, 0)),
            TimeRange(time(11, 0), time(17, 0)),
        ]

    def test_fully_booked(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, time(9, 0), time(17, 0), [slot.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.available_minutes == 0
        assert not capacity.has_capacity
        assert capacity.gaps == []

    def test_cancelled_bookings_are_ignored(self, db_session, provider, slot):
        create_booking(
            db_session, provider, MONDAY, time(9, 0), time(12, 0), [slot.id],
            status=AssignmentStatus.CANCELLED,
        )

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.available_minutes == 480

    def test_completed_bookings_still_count(self, db_session, provider, slot):
        create_booking(
            db_session, provider, MONDAY, time(9, 0), time(10, 0), [slot.id],
            status=AssignmentStatus.COMPLETED,
        )

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.booked_minutes == 60

    def test_bookings_of_other_slots_do_not_count(self, db_session, provider, slot):
        other = create_slot(db_session, provider, 0, time(18, 0), time(20, 0))
        create_booking(db_session, provider, MONDAY, time(18, 0), time(19, 0), [other.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.booked_minutes == 0

    def test_bookings_without_range_are_ignored(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, None, None, [slot.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.booked_minutes == 0

    def test_overlapping_bookings_are_not_double_counted(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, time(9, 0), time(11, 0), [slot.id])
        create_booking(db_session, provider, MONDAY, time(10, 0), time(12, 0), [slot.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.booked_minutes == 180
        assert capacity.available_minutes == 300

    def test_booking_partly_outside_window_is_clipped(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, time(16, 0), time(18, 0), [slot.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)

        assert capacity.booked_minutes == 60

    def test_exclude_booking(self, db_session, provider, slot):
        booking = create_booking(db_session, provider, MONDAY, time(9, 0), time(12, 0), [slot.id])

        capacity = AvailabilityService.get_slot_capacity(
            db_session, slot, MONDAY, exclude_booking_id=booking.id
        )

        assert capacity.available_minutes == 480

    def test_multi_slot_capacity_sums(self, db_session, provider, slot):
        evening = create_slot(db_session, provider, 0, time(18, 0), time(20, 0))
        create_booking(db_session, provider, MONDAY, time(18, 0), time(18, 30), [evening.id])

        capacity = AvailabilityService.get_multi_slot_capacity(db_session, [slot, evening], MONDAY)

        assert capacity.total_minutes == 600
        assert capacity.booked_minutes == 30
        assert capacity.available_minutes == 570
        assert len(capacity.gaps) == 2


class TestNextAvailableTime:
    """Earliest contiguous placement inside a slot."""

    def test_empty_slot_starts_at_window_start(self, db_session, slot):
        result = AvailabilityService.calculate_next_available_time(db_session, slot, MONDAY, 60)

        assert result == TimeRange(time(9, 0), time(10, 0))

    def test_first_gap_wins(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, time(10, 0), time(11, 0), [slot.id])

        result = AvailabilityService.calculate_next_available_time(db_session, slot, MONDAY, 60)

        assert result == TimeRange(time(9, 0), time(10, 0))

    def test_only_middle_gap_fits(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, time(9, 0), time(12, 0), [slot.id])
        create_booking(db_session, provider, MONDAY, time(15, 0), time(17, 0), [slot.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)
        result = AvailabilityService.calculate_next_available_time(db_session, slot, MONDAY, 90)

        assert capacity.booked_minutes == 300
        assert result == TimeRange(time(12, 0), time(13, 30))

    def test_fully_booked_returns_none(self, db_session, provider, slot):
        create_booking(db_session, provider, MONDAY, time(9, 0), time(17, 0), [slot.id])

        assert AvailabilityService.calculate_next_available_time(db_session, slot, MONDAY, 15) is None

    def test_fragmented_capacity_returns_none(self, db_session, provider, slot):
        """Aggregate free time is enough but no single gap is."""
        create_booking(db_session, provider, MONDAY, time(10, 0), time(12, 0), [slot.id])
        create_booking(db_session, provider, MONDAY, time(13, 0), time(16, 0), [slot.id])

        capacity = AvailabilityService.get_slot_capacity(db_session, slot, MONDAY)
        result = AvailabilityService.calculate_next_available_time(db_session, slot, MONDAY, 120)

        assert capacity.available_minutes == 180
        assert result is None

    def test_additional_booked_is_treated_as_occupied(self, db_session, slot):
        result = AvailabilityService.calculate_next_available_time(
            db_session, slot, MONDAY, 60, additional_booked=[Interval(540, 600)],
        )

        assert result == TimeRange(time(10, 0), time(11, 0))

    def test_rejects_non_positive_duration(self, db_session, slot):
        with pytest.raises(InvalidRequestError):
            AvailabilityService.calculate_next_available_time(db_session, slot, MONDAY, 0)


class TestSlotLookup:
    def test_slot_of_other_provider_is_not_found(self, db_session, slot):
        other = create_provider(db_session, name="Other", user_id=200)

        with pytest.raises(NotFoundError):
            AvailabilityService.get_slot_or_404(db_session, slot.id, provider_id=other.id)

    def test_active_slots_for_date_skip_inactive_and_other_days(self, db_session, provider, slot):
        create_slot(db_session, provider, 0, time(18, 0), time(19, 0), is_active=False)
        create_slot(db_session, provider, 1, time(9, 0), time(10, 0))
        early = create_slot(db_session, provider, 0, time(7, 0), time(8, 0))

        slots = AvailabilityService.get_active_slots_for_date(db_session, provider.id, MONDAY)

        assert [s.id for s in slots] == [early.id, slot.id]


# Bookings inside or around a 09:00-17:00 window, in 15-minute steps
booking_ranges = st.lists(
    st.tuples(st.integers(32, 72), st.integers(1, 16)).map(
        lambda pair: Interval(pair[0] * 15, min(pair[0] * 15 + pair[1] * 15, 1439))
    ),
    max_size=6,
)


class TestCapacityProperties:

    @settings(max_examples=30, deadline=None)
    @given(ranges=booking_ranges)
    def test_capacity_conservation(self, ranges):
        with fresh_session() as db:
            provider = create_provider(db)
            slot = create_slot(db, provider, 0, time(9, 0), time(17, 0))
            for interval in ranges:
                create_booking(db, provider, MONDAY, minutes_to_time(interval.start),
                               minutes_to_time(interval.end), [slot.id])

            capacity = AvailabilityService.get_slot_capacity(db, slot, MONDAY)

            assert capacity.booked_minutes + capacity.available_minutes == capacity.total_minutes
            assert capacity.available_minutes >= 0

    @settings(max_examples=30, deadline=None)
    @given(ranges=booking_ranges, needed=st.integers(1, 480))
    def test_no_phantom_placement(self, ranges, needed):
        with fresh_session() as db:
            provider = create_provider(db)
            slot = create_slot(db, provider, 0, time(9, 0), time(17, 0))
            for interval in ranges:
                create_booking(db, provider, MONDAY, minutes_to_time(interval.start),
                               minutes_to_time(interval.end), [slot.id])

            result = AvailabilityService.calculate_next_available_time(db, slot, MONDAY, needed)

            if result is not None:
                placed = result.interval
                assert placed.minutes == needed
                assert slot.window.start <= placed.start and placed.end <= slot.window.end
                assert not any(intervals_overlap(placed, booked) for booked in ranges)
