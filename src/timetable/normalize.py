"""Normalization of externally supplied busy-period records.

Personal commitments reach the planner from several sources (manual entry,
legacy exports, timetable imports) that name the same fields differently.
Each accepted shape is listed in ``_START_KEYS``/``_END_KEYS`` (full
timestamps) or ``_DATE_KEYS`` with ``_START_TIME_KEYS``/``_END_TIME_KEYS``
(a date plus HH:MM times). Anything else is rejected.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Iterable, List, Mapping, Optional, Sequence

from src.scheduler.models import BusyInterval


_START_KEYS = ("start", "startISO", "starts_at")
_END_KEYS = ("end", "endISO", "ends_at")
_DATE_KEYS = ("date", "day")
_START_TIME_KEYS = ("heureDebut", "start_time")
_END_TIME_KEYS = ("heureFin", "end_time")
_LABEL_KEYS = ("label", "nomActivite", "summary", "title", "name")


class UnrecognizedRecord(ValueError):
    """Raised when a record matches none of the accepted shapes."""


def _first(record: Mapping[str, object], keys: Sequence[str]) -> Optional[object]:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
    raise UnrecognizedRecord(f"Unsupported timestamp value: {value!r}")


def _as_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise UnrecognizedRecord(f"Unsupported date value: {value!r}")


def _as_time(value: object) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        return time.fromisoformat(value.strip())
    raise UnrecognizedRecord(f"Unsupported time value: {value!r}")


def normalize_activity(record: Mapping[str, object]) -> BusyInterval:
    """Map one external record onto a canonical ``BusyInterval``."""
    label_value = _first(record, _LABEL_KEYS)
    label = str(label_value).strip() if label_value is not None else ""

    start_value = _first(record, _START_KEYS)
    end_value = _first(record, _END_KEYS)
    try:
        if start_value is not None and end_value is not None:
            return BusyInterval(
                start=_as_datetime(start_value),
                end=_as_datetime(end_value),
                label=label,
            )

        day_value = _first(record, _DATE_KEYS)
        start_time = _first(record, _START_TIME_KEYS)
        end_time = _first(record, _END_TIME_KEYS)
        if day_value is not None and start_time is not None and end_time is not None:
            day = _as_date(day_value)
            return BusyInterval(
                start=datetime.combine(day, _as_time(start_time)),
                end=datetime.combine(day, _as_time(end_time)),
                label=label,
            )
    except UnrecognizedRecord:
        raise
    except ValueError as exc:
        raise UnrecognizedRecord(f"Malformed busy period record: {dict(record)!r}") from exc

    raise UnrecognizedRecord(f"Busy period record has no recognised time fields: {sorted(record)}")


def infer_module_titles(intervals: Iterable[BusyInterval], existing_titles: Iterable[str]) -> List[str]:
    """Distinct interval labels that do not name a known module yet, in first-seen order."""
    seen = {title.strip().casefold() for title in existing_titles}
    titles: List[str] = []
    for interval in intervals:
        label = interval.label.strip()
        key = label.casefold()
        if not label or key in seen:
            continue
        seen.add(key)
        titles.append(label)
    return titles
