"""Calendar collaborators that feed busy intervals into the scheduler."""

from .ics import IcsEvent, InvalidCalendar, parse_ics, to_busy_intervals
from .normalize import UnrecognizedRecord, infer_module_titles, normalize_activity

__all__ = [
    "IcsEvent",
    "InvalidCalendar",
    "UnrecognizedRecord",
    "infer_module_titles",
    "normalize_activity",
    "parse_ics",
    "to_busy_intervals",
]
