"""Extraction of busy intervals from iCalendar (.ics) timetables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import List, Optional

from icalendar import Calendar

from src.scheduler.models import BusyInterval


LOGGER = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Class"


class InvalidCalendar(ValueError):
    """Raised when an uploaded file is not an iCalendar document."""


@dataclass(slots=True)
class IcsEvent:
    """Event read from a timetable export, in naive local time."""

    summary: str
    start: datetime
    end: datetime
    location: Optional[str] = None


def to_local_datetime(value: object, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Convert a decoded DTSTART/DTEND value into a naive local datetime.

    All-day values map to midnight and floating times are kept as they are.
    Zoned values (``TZID`` or UTC) are converted to ``tz``, or to the
    machine's local zone when ``tz`` is ``None``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value
        return value.astimezone(tz).replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def _text(component, name: str) -> str:
    value = component.get(name)
    return str(value).strip() if value is not None else ""


def parse_ics(text: str, tz: Optional[tzinfo] = None) -> List[IcsEvent]:
    """Parse VEVENT components into events sorted by start time."""
    try:
        calendar = Calendar.from_ical(text)
    except ValueError as exc:
        raise InvalidCalendar("The file is not a valid iCalendar document.") from exc

    events: List[IcsEvent] = []
    for component in calendar.walk("VEVENT"):
        summary = _text(component, "SUMMARY") or DEFAULT_SUMMARY
        raw_start = component.get("DTSTART")
        raw_end = component.get("DTEND")
        if raw_start is None or raw_end is None:
            LOGGER.warning("Skipping calendar event without start or end: %s", summary)
            continue

        start = to_local_datetime(getattr(raw_start, "dt", None), tz)
        end = to_local_datetime(getattr(raw_end, "dt", None), tz)
        if start is None or end is None:
            LOGGER.warning("Skipping calendar event with unreadable dates: %s", summary)
            continue

        events.append(
            IcsEvent(
                summary=summary,
                start=start,
                end=end,
                location=_text(component, "LOCATION") or None,
            )
        )

    events.sort(key=lambda event: event.start)
    return events


def to_busy_intervals(events: List[IcsEvent]) -> List[BusyInterval]:
    """Turn parsed events into busy intervals, dropping empty or inverted ones."""
    intervals: List[BusyInterval] = []
    for event in events:
        interval = BusyInterval(start=event.start, end=event.end, label=event.summary)
        if not interval.is_valid:
            LOGGER.warning(
                "Dropping calendar event %r: it ends before it starts (%s - %s).",
                event.summary,
                event.start.isoformat(),
                event.end.isoformat(),
            )
            continue
        intervals.append(interval)
    return intervals
