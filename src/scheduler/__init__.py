"""Pure scheduling core: free slots, spaced repetition, session planning and risk."""

from .models import (
    BusyInterval,
    Difficulty,
    FreeSlot,
    LastScore,
    Module,
    PlannedSession,
    QuizResult,
    RiskItem,
    RiskLevel,
)
from .planner import deferred_reviews, due_modules, plan_day, plan_range
from .risk import build_last_score_by_module, classify, only_at_risk
from .slots import compute_free_slots
from .srs import (
    InvalidRecallGrade,
    RecallGrade,
    apply_recall,
    calculate_next_review,
    end_of_day,
    estimate_retention,
    next_interval_days,
)

__all__ = [
    "BusyInterval",
    "Difficulty",
    "FreeSlot",
    "InvalidRecallGrade",
    "LastScore",
    "Module",
    "PlannedSession",
    "QuizResult",
    "RecallGrade",
    "RiskItem",
    "RiskLevel",
    "apply_recall",
    "build_last_score_by_module",
    "calculate_next_review",
    "classify",
    "compute_free_slots",
    "deferred_reviews",
    "due_modules",
    "end_of_day",
    "estimate_retention",
    "next_interval_days",
    "only_at_risk",
    "plan_day",
    "plan_range",
]
