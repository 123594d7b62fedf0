"""Urgency ranking of modules for the dashboard."""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from .models import LastScore, Module, QuizResult, RiskItem, RiskLevel


DEFAULT_LOW_SCORE_THRESHOLD = 70
DEFAULT_SOON_DAYS = 2


def build_last_score_by_module(results: Iterable[QuizResult]) -> Dict[str, LastScore]:
    """Return the most recent quiz score per module (ties keep input order)."""
    ordered = sorted(results, key=lambda result: result.taken_on, reverse=True)
    latest: Dict[str, LastScore] = {}
    for result in ordered:
        if result.module_id not in latest:
            latest[result.module_id] = LastScore(score=result.score, taken_on=result.taken_on)
    return latest


def _classify_module(
    module: Module,
    last: Optional[LastScore],
    today: date,
    low_score_threshold: int,
    soon_days: int,
) -> RiskItem:
    next_review_on = module.next_review_at.date()

    if next_review_on <= today:
        level = RiskLevel.OVERDUE
        reason = f"Review due (next alert: {next_review_on.isoformat()})"
    elif last is not None and last.score < low_score_threshold:
        level = RiskLevel.LOW_SCORE
        reason = f"Low score ({last.score}%) on {last.taken_on.isoformat()}"
    elif 0 <= (next_review_on - today).days <= soon_days:
        diff = (next_review_on - today).days
        level = RiskLevel.SOON
        reason = f"Review soon (in {diff} day{'s' if diff > 1 else ''})"
    else:
        level = RiskLevel.OK
        reason = "Nothing urgent"

    return RiskItem(
        module_id=module.id,
        risk_level=level,
        reason=reason,
        title=module.title,
        next_review_on=next_review_on,
        difficulty=module.difficulty,
        retention=module.retention,
        last_score=last.score if last else None,
        last_score_on=last.taken_on if last else None,
    )


def classify(
    modules: Iterable[Module],
    last_scores: Mapping[str, LastScore],
    today: date,
    low_score_threshold: int = DEFAULT_LOW_SCORE_THRESHOLD,
    soon_days: int = DEFAULT_SOON_DAYS,
) -> List[RiskItem]:
    """Classify every module and order the result by severity, then title.

    Rules are checked in order and the first match wins: overdue, low score,
    due soon, ok. Nothing passed in is modified.
    """
    items = [
        _classify_module(module, last_scores.get(module.id), today, low_score_threshold, soon_days)
        for module in modules
    ]
    items.sort(key=lambda item: (item.risk_level.rank, item.title.casefold(), item.module_id))
    return items


def only_at_risk(items: Iterable[RiskItem]) -> List[RiskItem]:
    """Drop the modules that need no attention."""
    return [item for item in items if item.risk_level is not RiskLevel.OK]
