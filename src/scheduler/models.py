"""Plain data records shared by the scheduling core."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional


class Difficulty(str, Enum):
    """Perceived difficulty of a learning module."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def parse(cls, value: object) -> "Difficulty":
        if isinstance(value, Difficulty):
            return value
        if isinstance(value, str):
            key = value.strip().casefold()
            found = _DIFFICULTY_ALIASES.get(key)
            if found is not None:
                return found
        raise ValueError(f"Unknown difficulty: {value!r}")


_DIFFICULTY_ALIASES = {
    "beginner": Difficulty.BEGINNER,
    "intermediate": Difficulty.INTERMEDIATE,
    "advanced": Difficulty.ADVANCED,
    "debutant": Difficulty.BEGINNER,
    "intermediaire": Difficulty.INTERMEDIATE,
    "avance": Difficulty.ADVANCED,
}


@dataclass(frozen=True, slots=True)
class BusyInterval:
    """A half-open period during which the learner is unavailable."""

    start: datetime
    end: datetime
    label: str = ""

    @property
    def is_valid(self) -> bool:
        return self.start < self.end


@dataclass(slots=True)
class Module:
    """Snapshot of a learning module and its review metadata."""

    id: str
    title: str
    difficulty: Difficulty
    estimated_minutes: int
    repetition_index: int
    next_review_at: datetime
    retention: int


@dataclass(slots=True)
class FreeSlot:
    """Free time inside the availability window; the planner shrinks it in place."""

    start: datetime
    end: datetime

    @property
    def minutes(self) -> float:
        return (self.end - self.start) / timedelta(minutes=1)

    def copy(self) -> "FreeSlot":
        return FreeSlot(start=self.start, end=self.end)


@dataclass(frozen=True, slots=True)
class PlannedSession:
    """A review session placed inside a free slot."""

    id: str
    module_id: str
    start: datetime
    end: datetime


@dataclass(frozen=True, slots=True)
class QuizResult:
    """Score obtained on a quiz covering one module."""

    module_id: str
    score: int
    taken_on: date


@dataclass(frozen=True, slots=True)
class LastScore:
    score: int
    taken_on: date


class RiskLevel(str, Enum):
    """Urgency classification used to surface modules on the dashboard."""

    OVERDUE = "overdue"
    LOW_SCORE = "lowScore"
    SOON = "soon"
    OK = "ok"

    @property
    def rank(self) -> int:
        return _RISK_RANKS[self]


_RISK_RANKS = {
    RiskLevel.OVERDUE: 0,
    RiskLevel.LOW_SCORE: 1,
    RiskLevel.SOON: 2,
    RiskLevel.OK: 3,
}


@dataclass(frozen=True, slots=True)
class RiskItem:
    """Dashboard row explaining why a module needs attention."""

    module_id: str
    risk_level: RiskLevel
    reason: str
    title: str = ""
    next_review_on: Optional[date] = None
    difficulty: Optional[Difficulty] = None
    retention: Optional[int] = None
    last_score: Optional[int] = None
    last_score_on: Optional[date] = None
