from __future__ import annotations

from datetime import date, datetime

import pytest

from src.scheduler import Difficulty, Module
from src.scheduler.srs import (
    BASE_INTERVALS_DAYS,
    InvalidRecallGrade,
    RecallGrade,
    apply_recall,
    calculate_next_review,
    end_of_day,
    estimate_retention,
    initial_schedule,
    next_interval_days,
)


TODAY = date(2026, 10, 19)


def _module(repetition_index: int = 0) -> Module:
    return Module(
        id="1",
        title="Algebra",
        difficulty=Difficulty.INTERMEDIATE,
        estimated_minutes=25,
        repetition_index=repetition_index,
        next_review_at=datetime(2026, 10, 19, 23, 59, 59),
        retention=estimate_retention(repetition_index),
    )


def test_easy_recall_stretches_first_interval() -> None:
    schedule = calculate_next_review(repetition_index=0, recall="facile", reference_day=TODAY)

    assert schedule.interval_days == 2
    assert schedule.repetition_index == 1
    assert schedule.next_review_at == datetime(2026, 10, 21, 23, 59, 59)
    assert schedule.retention == 62


def test_hard_recall_keeps_repetition_index() -> None:
    schedule = calculate_next_review(repetition_index=0, recall="difficile", reference_day=TODAY)

    assert schedule.interval_days == 1
    assert schedule.repetition_index == 0
    assert schedule.retention == 50


def test_medium_recall_follows_ladder() -> None:
    intervals = [next_interval_days(index, RecallGrade.MEDIUM) for index in range(6)]

    assert intervals == [1, 3, 7, 30, 30, 30]


@pytest.mark.parametrize(
    ("index", "easy", "hard"),
    [(0, 2, 1), (1, 5, 2), (2, 11, 4), (3, 45, 18)],
)
def test_grade_factors_round_half_up(index: int, easy: int, hard: int) -> None:
    assert next_interval_days(index, "easy") == easy
    assert next_interval_days(index, "hard") == hard


def test_grades_are_ordered_on_every_rung() -> None:
    for index in range(len(BASE_INTERVALS_DAYS) + 2):
        hard = next_interval_days(index, "hard")
        medium = next_interval_days(index, "medium")
        easy = next_interval_days(index, "easy")
        assert 1 <= hard <= medium <= easy


def test_retention_grows_and_caps() -> None:
    values = [estimate_retention(index) for index in range(10)]

    assert values[0] == 50
    assert values == sorted(values)
    assert max(values) == 95
    assert all(0 <= value <= 100 for value in values)


def test_unknown_grade_is_rejected() -> None:
    with pytest.raises(InvalidRecallGrade):
        calculate_next_review(repetition_index=0, recall="perfect", reference_day=TODAY)
    with pytest.raises(InvalidRecallGrade):
        RecallGrade.parse(3)


def test_grade_parsing_ignores_case_and_spaces() -> None:
    assert RecallGrade.parse(" Moyen ") is RecallGrade.MEDIUM
    assert RecallGrade.parse("EASY") is RecallGrade.EASY


def test_initial_schedule_targets_next_day() -> None:
    schedule = initial_schedule(TODAY)

    assert schedule.repetition_index == 0
    assert schedule.next_review_at == datetime(2026, 10, 20, 23, 59, 59)
    assert schedule.retention == 50


def test_apply_recall_returns_updated_copy() -> None:
    module = _module(repetition_index=2)

    updated = apply_recall(module, "medium", TODAY)

    assert updated is not module
    assert module.repetition_index == 2
    assert updated.repetition_index == 3
    assert updated.next_review_at == end_of_day(date(2026, 10, 26))
    assert updated.retention == 86
    assert updated.title == module.title
