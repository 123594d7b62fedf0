"""Greedy placement of due module reviews into free slots."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .models import BusyInterval, FreeSlot, Module, PlannedSession
from .slots import (
    DEFAULT_WINDOW_END_HOUR,
    DEFAULT_WINDOW_START_HOUR,
    MIN_SLOT_MINUTES,
    compute_free_slots,
)
from .srs import end_of_day


LOGGER = logging.getLogger(__name__)

SessionIdFactory = Callable[[Module, datetime], str]


def default_session_id(module: Module, start: datetime) -> str:
    """Deterministic identifier: a module is placed at most once per start time."""
    return f"{module.id}@{start.isoformat()}"


def due_modules(day: date, modules: Iterable[Module]) -> List[Module]:
    """Modules due on or before ``day``, most overdue first."""
    due = [module for module in modules if module.next_review_at.date() <= day]
    due.sort(key=lambda module: module.next_review_at)
    return due


def plan_day(
    day: date,
    modules: Iterable[Module],
    free_slots: Sequence[FreeSlot],
    id_factory: Optional[SessionIdFactory] = None,
) -> List[PlannedSession]:
    """Assign due modules to the day's free slots in a single forward pass.

    The scan pointer never rewinds: once a slot is too small for a module it
    is not offered to any later module either. ``free_slots`` is copied, the
    caller's slots are left untouched.
    """
    make_id = id_factory or default_session_id
    slots = [slot.copy() for slot in free_slots]
    sessions: List[PlannedSession] = []
    pointer = 0

    for module in due_modules(day, modules):
        if module.estimated_minutes <= 0:
            # never fits; the pointer stays where it is for the next module
            continue
        duration = timedelta(minutes=module.estimated_minutes)
        while pointer < len(slots):
            slot = slots[pointer]
            end = slot.start + duration
            if end <= slot.end:
                sessions.append(
                    PlannedSession(
                        id=make_id(module, slot.start),
                        module_id=module.id,
                        start=slot.start,
                        end=end,
                    )
                )
                slot.start = end
                break
            pointer += 1

    return sessions


def plan_range(
    days: Iterable[date],
    modules: Iterable[Module],
    school_busy: Iterable[BusyInterval],
    personal_busy: Iterable[BusyInterval],
    window_start_hour: int = DEFAULT_WINDOW_START_HOUR,
    window_end_hour: int = DEFAULT_WINDOW_END_HOUR,
    min_slot_minutes: int = MIN_SLOT_MINUTES,
    id_factory: Optional[SessionIdFactory] = None,
) -> List[PlannedSession]:
    """Plan reviews over several days, placing each module at most once per run."""
    school = list(school_busy)
    personal = list(personal_busy)
    remaining = list(modules)
    all_sessions: List[PlannedSession] = []

    for day in days:
        free_slots = compute_free_slots(
            day,
            school,
            personal,
            window_start_hour=window_start_hour,
            window_end_hour=window_end_hour,
            min_slot_minutes=min_slot_minutes,
        )
        sessions = plan_day(day, remaining, free_slots, id_factory=id_factory)
        all_sessions.extend(sessions)

        # planned modules leave the candidate set; their end-of-day marker is
        # reported by deferred_reviews()
        planned_ids = {session.module_id for session in sessions}
        remaining = [module for module in remaining if module.id not in planned_ids]

        LOGGER.debug(
            "Planned %s session(s) on %s across %s free slot(s); %s module(s) left.",
            len(sessions),
            day.isoformat(),
            len(free_slots),
            len(remaining),
        )

    return all_sessions


def deferred_reviews(sessions: Iterable[PlannedSession]) -> Dict[str, datetime]:
    """End-of-day review marker to write back for every planned module."""
    deferred: Dict[str, datetime] = {}
    for session in sessions:
        deferred.setdefault(session.module_id, end_of_day(session.start.date()))
    return deferred
