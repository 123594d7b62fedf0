"""Spaced-repetition interval ladder and retention estimate for module reviews."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum

from .models import Module


BASE_INTERVALS_DAYS = (1, 3, 7, 30)
EASY_FACTOR = 1.5
HARD_FACTOR = 0.6
MIN_INTERVAL_DAYS = 1
BASE_RETENTION = 50
RETENTION_STEP = 12
MAX_RETENTION = 95


class InvalidRecallGrade(ValueError):
    """Raised when a recall grade outside the supported set reaches the model."""


class RecallGrade(str, Enum):
    """Self-reported difficulty of recalling a module during a quiz."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: object) -> "RecallGrade":
        """Map an accepted grade spelling onto the enum or raise ``InvalidRecallGrade``."""
        if isinstance(value, RecallGrade):
            return value
        if isinstance(value, str):
            grade = _GRADE_ALIASES.get(value.strip().casefold())
            if grade is not None:
                return grade
        raise InvalidRecallGrade(f"Unknown recall grade: {value!r}")


_GRADE_ALIASES = {
    "easy": RecallGrade.EASY,
    "medium": RecallGrade.MEDIUM,
    "hard": RecallGrade.HARD,
    "facile": RecallGrade.EASY,
    "moyen": RecallGrade.MEDIUM,
    "difficile": RecallGrade.HARD,
}


@dataclass(slots=True)
class ReviewSchedule:
    """Calculated review data for a module after a recall event."""

    next_review_at: datetime
    interval_days: int
    repetition_index: int
    retention: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def end_of_day(day: date) -> datetime:
    """Final instant of ``day``; used as the reference time for reviews and planning."""
    return datetime.combine(day, time(23, 59, 59))


def base_interval_days(repetition_index: int) -> int:
    position = min(max(0, repetition_index), len(BASE_INTERVALS_DAYS) - 1)
    return BASE_INTERVALS_DAYS[position]


def next_interval_days(repetition_index: int, recall: RecallGrade | str) -> int:
    """Return the number of days until the next review."""
    grade = RecallGrade.parse(recall)
    base = base_interval_days(repetition_index)
    if grade is RecallGrade.EASY:
        return _round_half_up(base * EASY_FACTOR)
    if grade is RecallGrade.MEDIUM:
        return base
    return max(MIN_INTERVAL_DAYS, _round_half_up(base * HARD_FACTOR))


def estimate_retention(repetition_index: int) -> int:
    """Estimate memory strength (0-100) from the repetition count alone."""
    return min(MAX_RETENTION, BASE_RETENTION + max(0, repetition_index) * RETENTION_STEP)


def initial_schedule(created_on: date) -> ReviewSchedule:
    """Schedule of a freshly added module: first review on the first ladder rung."""
    interval = base_interval_days(0)
    return ReviewSchedule(
        next_review_at=end_of_day(created_on) + timedelta(days=interval),
        interval_days=interval,
        repetition_index=0,
        retention=estimate_retention(0),
    )


def calculate_next_review(
    *,
    repetition_index: int,
    recall: RecallGrade | str,
    reference_day: date,
) -> ReviewSchedule:
    """Return the schedule produced by a recall event on ``reference_day``."""
    grade = RecallGrade.parse(recall)
    current = max(0, repetition_index)
    interval = next_interval_days(current, grade)
    repetition = current if grade is RecallGrade.HARD else current + 1

    return ReviewSchedule(
        next_review_at=end_of_day(reference_day) + timedelta(days=interval),
        interval_days=interval,
        repetition_index=repetition,
        retention=estimate_retention(repetition),
    )


def apply_recall(module: Module, recall: RecallGrade | str, reference_day: date) -> Module:
    """Return a copy of ``module`` updated for a recall event."""
    schedule = calculate_next_review(
        repetition_index=module.repetition_index,
        recall=recall,
        reference_day=reference_day,
    )
    return replace(
        module,
        repetition_index=schedule.repetition_index,
        next_review_at=schedule.next_review_at,
        retention=schedule.retention,
    )
