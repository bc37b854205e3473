"""
Shared types for availability-related functionality.

This module contains shared data classes and types used across availability services
to ensure type safety and consistency.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Dict, List, Optional

from utils.datetime_utils import format_time
from utils.interval_utils import Interval, interval_from_times, minutes_to_time


@dataclass(frozen=True)
class TimeRange:
    """A concrete ``[start, end)`` time-of-day range."""
    start: time
    end: time

    @classmethod
    def from_interval(cls, interval: Interval) -> "TimeRange":
        return cls(start=minutes_to_time(interval.start), end=minutes_to_time(interval.end))

    @property
    def interval(self) -> Interval:
        return interval_from_times(self.start, self.end)

    @property
    def minutes(self) -> int:
        return self.interval.minutes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "start": format_time(self.start),
            "end": format_time(self.end),
            "duration_minutes": self.minutes,
        }


@dataclass
class SlotCapacity:
    """
    Capacity of one slot (or a group of slots) on a date.

    ``booked_minutes + available_minutes == total_minutes`` always holds;
    ``available_minutes`` is aggregate and does not imply that a contiguous
    placement of that size exists (see ``gaps``).
    """
    total_minutes: int
    booked_minutes: int
    available_minutes: int
    gaps: List[TimeRange] = field(default_factory=list)

    @property
    def has_capacity(self) -> bool:
        return self.available_minutes > 0

    @property
    def largest_gap_minutes(self) -> int:
        return max((gap.minutes for gap in self.gaps), default=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_minutes": self.total_minutes,
            "booked_minutes": self.booked_minutes,
            "available_minutes": self.available_minutes,
            "has_capacity": self.has_capacity,
            "gaps": [gap.to_dict() for gap in self.gaps],
        }


@dataclass(frozen=True)
class AllocationClaim:
    """A concrete piece of an allocation: some minutes of one slot on one date."""
    slot_id: int
    date: date
    start: time
    end: time
    minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot_id": self.slot_id,
            "date": self.date.isoformat(),
            "start": format_time(self.start),
            "end": format_time(self.end),
            "minutes": self.minutes,
        }


@dataclass
class AllocationResult:
    """
    Outcome of a greedy multi-day allocation.

    A shortfall is not an error: ``shortfall_minutes > 0`` means the walk hit
    its day cap before the full duration could be placed.
    """
    provider_id: int
    start_date: date
    needed_minutes: int
    claims: List[AllocationClaim] = field(default_factory=list)
    days_processed: int = 0

    @property
    def fulfilled_minutes(self) -> int:
        return sum(claim.minutes for claim in self.claims)

    @property
    def shortfall_minutes(self) -> int:
        return self.needed_minutes - self.fulfilled_minutes

    @property
    def is_fulfilled(self) -> bool:
        return self.shortfall_minutes == 0

    @property
    def slot_ids(self) -> List[int]:
        """Distinct claimed slot ids in claim order."""
        seen: List[int] = []
        for claim in self.claims:
            if claim.slot_id not in seen:
                seen.append(claim.slot_id)
        return seen

    @property
    def end_date(self) -> Optional[date]:
        """Date of the last claim, or None when nothing was claimed."""
        if not self.claims:
            return None
        return max(claim.date for claim in self.claims)

    @property
    def spans_multiple_days(self) -> bool:
        return len({claim.date for claim in self.claims}) > 1

    @property
    def display_range(self) -> Optional[TimeRange]:
        """
        Range shown to (and persisted by) callers.

        One claim gives its exact range. Several claims collapse to the
        earliest start and latest end, which is a coarse envelope rather than
        the union of the claimed sub-intervals.
        """
        if not self.claims:
            return None
        if len(self.claims) == 1:
            claim = self.claims[0]
            return TimeRange(claim.start, claim.end)
        return TimeRange(
            start=min(claim.start for claim in self.claims),
            end=max(claim.end for claim in self.claims),
        )

    def to_dict(self) -> Dict[str, Any]:
        display = self.display_range
        end_date = self.end_date
        return {
            "provider_id": self.provider_id,
            "start_date": self.start_date.isoformat(),
            "end_date": end_date.isoformat() if end_date else None,
            "needed_minutes": self.needed_minutes,
            "fulfilled_minutes": self.fulfilled_minutes,
            "shortfall_minutes": self.shortfall_minutes,
            "days_processed": self.days_processed,
            "slot_ids": self.slot_ids,
            "display_start": format_time(display.start) if display else None,
            "display_end": format_time(display.end) if display else None,
            "claims": [claim.to_dict() for claim in self.claims],
        }
