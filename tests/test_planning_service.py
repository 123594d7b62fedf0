from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from src.db.busy import PERSONAL, SCHOOL, add_busy_period, list_busy_periods
from src.db.modules import ModulePayload, get_or_create_module, list_active_modules, record_quiz_result
from src.db.plans import list_planned_sessions
from src.db.users import load_learner_summary, register_learner
from src.scheduler import BusyInterval, RiskLevel
from src.services import PlanningOptions, PlanningService, options_from_settings
from src.services.planning import sessions_by_day


TODAY = date(2026, 10, 19)


async def _seed_modules(session_factory, chat_id: int, *titles_and_minutes: tuple[str, int]) -> list[int]:
    ids = []
    async with session_factory() as session:
        async with session.begin():
            await register_learner(session, chat_id, "Lea", None)
            for title, minutes in titles_and_minutes:
                record, _ = await get_or_create_module(
                    session,
                    chat_id,
                    ModulePayload(title=title, estimated_minutes=minutes),
                    date(2026, 10, 17),
                )
                ids.append(record.id)
    return ids


@pytest.mark.asyncio
async def test_plan_stores_sessions_and_defers_reviews(session_factory) -> None:
    chat_id = 501
    algebra_id, history_id = await _seed_modules(session_factory, chat_id, ("Algebra", 25), ("History", 20))
    async with session_factory() as session:
        async with session.begin():
            await add_busy_period(
                session,
                chat_id,
                BusyInterval(datetime(2026, 10, 19, 17, 40), datetime(2026, 10, 19, 20), "Sport"),
                kind=PERSONAL,
            )

    service = PlanningService(session_factory)
    result = await service.plan(chat_id, TODAY, 2)

    assert [(session.module_id, session.start) for session in result.sessions] == [
        (str(algebra_id), datetime(2026, 10, 19, 17)),
        (str(history_id), datetime(2026, 10, 20, 17)),
    ]
    assert result.unscheduled == []

    async with session_factory() as session:
        stored = await list_planned_sessions(session, chat_id, TODAY, date(2026, 10, 20))
        modules = {record.id: record for record in await list_active_modules(session, chat_id)}
        stats = await load_learner_summary(session, chat_id, TODAY)

    assert stored == result.sessions
    assert modules[algebra_id].next_review_at == datetime(2026, 10, 19, 23, 59, 59)
    assert modules[history_id].next_review_at == datetime(2026, 10, 20, 23, 59, 59)
    assert stats is not None
    assert stats.sessions_planned == 2


@pytest.mark.asyncio
async def test_plan_reports_modules_that_did_not_fit(session_factory) -> None:
    chat_id = 502
    await _seed_modules(session_factory, chat_id, ("Long read", 120), ("Essay", 90))

    service = PlanningService(session_factory, PlanningOptions(window_start_hour=17, window_end_hour=19))
    result = await service.plan(chat_id, TODAY, 1)

    assert [result.modules[session.module_id].title for session in result.sessions] == ["Long read"]
    assert [module.title for module in result.unscheduled] == ["Essay"]


@pytest.mark.asyncio
async def test_plan_with_no_days_is_empty(session_factory) -> None:
    result = await PlanningService(session_factory).plan(503, TODAY, 0)

    assert result.days == []
    assert result.sessions == []


@pytest.mark.asyncio
async def test_replanning_overwrites_previous_plan(session_factory) -> None:
    chat_id = 504
    await _seed_modules(session_factory, chat_id, ("Biology", 25))
    service = PlanningService(session_factory)

    first = await service.plan(chat_id, TODAY, 3)
    second = await service.plan(chat_id, TODAY, 3)

    async with session_factory() as session:
        stored = await list_planned_sessions(session, chat_id, TODAY, date(2026, 10, 21))

    assert len(first.sessions) == 1
    assert stored == second.sessions


@pytest.mark.asyncio
async def test_risk_report_uses_latest_quiz_score(session_factory) -> None:
    chat_id = 505
    async with session_factory() as session:
        async with session.begin():
            late, _ = await get_or_create_module(session, chat_id, ModulePayload(title="Late"), date(2026, 10, 10))
            weak, _ = await get_or_create_module(session, chat_id, ModulePayload(title="Weak"), date(2026, 10, 25))
            fine, _ = await get_or_create_module(session, chat_id, ModulePayload(title="Fine"), date(2026, 10, 25))
            await record_quiz_result(session, weak, 90, datetime(2026, 10, 10, 18))
            await record_quiz_result(session, weak, 40, datetime(2026, 10, 18, 18))
            await record_quiz_result(session, fine, 40, datetime(2026, 10, 10, 18))
            await record_quiz_result(session, fine, 95, datetime(2026, 10, 18, 18))

    items = await PlanningService(session_factory).risk_report(chat_id, TODAY)

    assert [(item.module_id, item.risk_level) for item in items] == [
        (str(late.id), RiskLevel.OVERDUE),
        (str(weak.id), RiskLevel.LOW_SCORE),
        (str(fine.id), RiskLevel.OK),
    ]
    assert items[1].reason == "Low score (40%) on 2026-10-18"


@pytest.mark.asyncio
async def test_import_school_calendar_stores_periods_and_creates_modules(session_factory) -> None:
    chat_id = 506
    await _seed_modules(session_factory, chat_id, ("Physics", 25))
    calendar = "\n".join(
        [
            "BEGIN:VCALENDAR",
            "BEGIN:VEVENT",
            "DTSTART:20261020T060000Z",
            "DTEND:20261020T080000Z",
            "SUMMARY:Physics",
            "END:VEVENT",
            "BEGIN:VEVENT",
            "DTSTART:20261020T090000",
            "DTEND:20261020T100000",
            "SUMMARY:History",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )

    service = PlanningService(session_factory, PlanningOptions(default_module_minutes=30))
    result = await service.import_school_calendar(chat_id, calendar, TODAY, tz=ZoneInfo("Europe/Zurich"))

    assert result.busy_periods == 2
    assert result.created_modules == ["History"]

    async with session_factory() as session:
        periods = await list_busy_periods(session, chat_id, SCHOOL)
        modules = await list_active_modules(session, chat_id)
        stats = await load_learner_summary(session, chat_id, TODAY)

    assert [(period.label, period.starts_at) for period in periods] == [
        ("Physics", datetime(2026, 10, 20, 8)),
        ("History", datetime(2026, 10, 20, 9)),
    ]
    history = next(module for module in modules if module.title == "History")
    assert history.estimated_minutes == 30
    assert history.next_review_at == datetime(2026, 10, 20, 23, 59, 59)
    assert stats is not None
    assert stats.modules_added == 1


def test_options_from_settings_copies_scheduler_fields() -> None:
    from src.app.settings import AppSettings

    settings = AppSettings(
        app_name="Study Planner",
        app_env="test",
        log_level="INFO",
        telegram_bot_token="token",
        window_start_hour=16,
        window_end_hour=21,
        min_slot_minutes=15,
        low_score_threshold=60,
        soon_days=3,
        default_module_minutes=40,
    )

    assert options_from_settings(settings) == PlanningOptions(
        window_start_hour=16,
        window_end_hour=21,
        min_slot_minutes=15,
        low_score_threshold=60,
        soon_days=3,
        default_module_minutes=40,
    )


def test_sessions_by_day_groups_in_order() -> None:
    from src.scheduler import PlannedSession

    sessions = [
        PlannedSession("a", "1", datetime(2026, 10, 19, 17), datetime(2026, 10, 19, 17, 25)),
        PlannedSession("b", "2", datetime(2026, 10, 19, 17, 25), datetime(2026, 10, 19, 17, 45)),
        PlannedSession("c", "3", datetime(2026, 10, 20, 17), datetime(2026, 10, 20, 17, 25)),
    ]

    grouped = sessions_by_day(sessions)

    assert [planned.id for planned in grouped[date(2026, 10, 19)]] == ["a", "b"]
    assert [planned.id for planned in grouped[date(2026, 10, 20)]] == ["c"]
