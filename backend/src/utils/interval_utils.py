"""
Half-open time interval helpers.

Intervals are ``[start, end)`` pairs expressed in minutes since midnight.
Everything here is a pure function over plain tuples so availability and
overlap logic can be tested without a database.
"""

from datetime import time
from typing import Iterable, List, NamedTuple

from core.constants import MINUTES_PER_DAY


class Interval(NamedTuple):
    """Half-open interval in minutes-of-day."""
    start: int
    end: int

    @property
    def minutes(self) -> int:
        return self.end - self.start


def time_to_minutes(time_obj: time) -> int:
    """Convert a time-of-day to minutes since midnight (seconds are dropped)."""
    return time_obj.hour * 60 + time_obj.minute


def minutes_to_time(minutes: int) -> time:
    """
    Convert minutes since midnight back to a time-of-day.

    Raises:
        ValueError: If minutes fall outside [0, 24:00)
    """
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def interval_from_times(start: time, end: time) -> Interval:
    """Build an Interval from two time-of-day values."""
    return Interval(time_to_minutes(start), time_to_minutes(end))


def intervals_overlap(a: Interval, b: Interval) -> bool:
    """Check if two half-open intervals share at least one minute."""
    return a.start < b.end and b.start < a.end


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Coalesce overlapping or adjacent intervals.

    Empty intervals (end <= start) are dropped.

    Returns:
        Disjoint intervals sorted by start
    """
    ordered = sorted(
        (Interval(start, end) for start, end in intervals if end > start),
        key=lambda interval: (interval.start, interval.end),
    )
    merged: List[Interval] = []
    for interval in ordered:
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged


def clip_interval(interval: Interval, window: Interval) -> Interval | None:
    """Intersect an interval with a window, or None if they do not overlap."""
    start = max(interval.start, window.start)
    end = min(interval.end, window.end)
    if end <= start:
        return None
    return Interval(start, end)


def find_gaps(window: Interval, booked: Iterable[Interval]) -> List[Interval]:
    """
    Find the free sub-intervals of a window.

    Booked intervals are clipped to the window and merged first, so callers
    may pass raw booking ranges.

    Returns:
        Free intervals in chronological order (before the first booking,
        between bookings, after the last booking)
    """
    clipped = [c for c in (clip_interval(b, window) for b in booked) if c is not None]
    gaps: List[Interval] = []
    cursor = window.start
    for busy in merge_intervals(clipped):
        if cursor < busy.start:
            gaps.append(Interval(cursor, busy.start))
        cursor = max(cursor, busy.end)
    if cursor < window.end:
        gaps.append(Interval(cursor, window.end))
    return gaps


def total_minutes(intervals: Iterable[Interval]) -> int:
    """Sum of interval lengths."""
    return sum(interval.end - interval.start for interval in intervals)


def envelope(intervals: Iterable[Interval]) -> Interval | None:
    """Earliest start to latest end, or None for no intervals."""
    items = list(intervals)
    if not items:
        return None
    return Interval(min(i.start for i in items), max(i.end for i in items))
