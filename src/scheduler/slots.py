"""Free time computation inside a daily availability window."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from itertools import chain
from typing import Iterable, List, Optional

from .models import BusyInterval, FreeSlot


DEFAULT_WINDOW_START_HOUR = 17
DEFAULT_WINDOW_END_HOUR = 20
MIN_SLOT_MINUTES = 20


def window_bounds(day: date, start_hour: int, end_hour: int) -> Optional[tuple[datetime, datetime]]:
    """Return the availability window for ``day`` or ``None`` when it is empty."""
    if not (0 <= start_hour <= 24 and 0 <= end_hour <= 24) or start_hour >= end_hour:
        return None
    midnight = datetime.combine(day, time.min)
    return midnight + timedelta(hours=start_hour), midnight + timedelta(hours=end_hour)


def busy_on_day(day: date, *collections: Iterable[BusyInterval]) -> List[BusyInterval]:
    """Well-formed intervals starting on ``day``, ordered by start time."""
    blockers = [
        interval
        for interval in chain.from_iterable(collections)
        if interval.start.date() == day and interval.is_valid
    ]
    blockers.sort(key=lambda interval: interval.start)
    return blockers


def compute_free_slots(
    day: date,
    school_busy: Iterable[BusyInterval],
    personal_busy: Iterable[BusyInterval],
    window_start_hour: int = DEFAULT_WINDOW_START_HOUR,
    window_end_hour: int = DEFAULT_WINDOW_END_HOUR,
    min_slot_minutes: int = MIN_SLOT_MINUTES,
) -> List[FreeSlot]:
    """Return the free sub-intervals of the day's window, shortest fragments removed.

    Malformed intervals (``start >= end``) are skipped. Intervals starting on
    another day are ignored even when they spill over midnight.
    """
    bounds = window_bounds(day, window_start_hour, window_end_hour)
    if bounds is None:
        return []
    window_start, window_end = bounds

    cursor = window_start
    free: List[FreeSlot] = []
    for interval in busy_on_day(day, school_busy, personal_busy):
        if interval.start >= window_end:
            break
        if interval.start > cursor:
            free.append(FreeSlot(start=cursor, end=interval.start))
        # the cursor only moves forward, so nested and overlapping periods collapse
        cursor = max(cursor, interval.end)

    if cursor < window_end:
        free.append(FreeSlot(start=cursor, end=window_end))

    minimum = timedelta(minutes=min_slot_minutes)
    return [slot for slot in free if slot.end - slot.start >= minimum]
