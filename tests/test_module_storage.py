from __future__ import annotations

from datetime import date, datetime

import pytest

from src.db.busy import (
    PERSONAL,
    SCHOOL,
    add_busy_period,
    delete_busy_period,
    list_busy_periods,
    replace_school_periods,
)
from src.db.modules import (
    ModulePayload,
    deactivate_module,
    defer_module_reviews,
    get_module,
    get_or_create_module,
    list_active_modules,
    list_quiz_results,
    record_module_review,
    record_quiz_result,
    to_snapshot,
)
from src.db.plans import list_planned_sessions, replace_planned_sessions
from src.scheduler import BusyInterval, Difficulty, PlannedSession
from src.scheduler.srs import calculate_next_review


TODAY = date(2026, 10, 19)


@pytest.mark.asyncio
async def test_get_or_create_module_reuses_title_ignoring_case(session_factory) -> None:
    chat_id = 401

    async with session_factory() as session:
        async with session.begin():
            first, created_first = await get_or_create_module(
                session,
                chat_id,
                ModulePayload(title="  Linear   Algebra ", estimated_minutes=30, difficulty="avance"),
                TODAY,
            )
        async with session.begin():
            second, created_second = await get_or_create_module(
                session, chat_id, ModulePayload(title="linear algebra"), TODAY
            )

    assert created_first is True
    assert created_second is False
    assert second.id == first.id
    assert first.title == "Linear Algebra"
    assert first.difficulty == Difficulty.ADVANCED.value
    assert first.next_review_at == datetime(2026, 10, 20, 23, 59, 59)
    assert first.repetition_index == 0
    assert first.retention == 50


@pytest.mark.asyncio
async def test_deactivated_module_is_hidden_and_can_return(session_factory) -> None:
    chat_id = 402

    async with session_factory() as session:
        async with session.begin():
            record, _ = await get_or_create_module(session, chat_id, ModulePayload(title="History"), TODAY)
            assert await deactivate_module(session, chat_id, record.id) is record
            assert await deactivate_module(session, chat_id, record.id) is None
            assert await list_active_modules(session, chat_id) == []

            again, created = await get_or_create_module(session, chat_id, ModulePayload(title="History"), TODAY)

    assert created is False
    assert again.id == record.id
    assert again.is_active is True


@pytest.mark.asyncio
async def test_modules_are_scoped_to_their_learner(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            record, _ = await get_or_create_module(session, 403, ModulePayload(title="Biology"), TODAY)
            assert await get_module(session, 404, record.id) is None
            assert await get_module(session, 403, record.id) is record
            assert await list_active_modules(session, 404) == []


@pytest.mark.asyncio
async def test_review_and_quiz_results_are_persisted(session_factory) -> None:
    chat_id = 405
    reviewed_at = datetime(2026, 10, 19, 18, 30)

    async with session_factory() as session:
        async with session.begin():
            record, _ = await get_or_create_module(session, chat_id, ModulePayload(title="Chemistry"), TODAY)
            schedule = calculate_next_review(repetition_index=0, recall="easy", reference_day=TODAY)
            await record_module_review(session, record, schedule, reviewed_at)
            await record_quiz_result(session, record, 140, reviewed_at)
            await record_quiz_result(session, record, -5, reviewed_at)

        async with session.begin():
            results = await list_quiz_results(session, [record.id])
            snapshot = to_snapshot(record)

    assert [result.score for result in results] == [100, 0]
    assert record.last_review_at == reviewed_at
    assert snapshot.id == str(record.id)
    assert snapshot.repetition_index == 1
    assert snapshot.next_review_at == datetime(2026, 10, 21, 23, 59, 59)
    assert snapshot.retention == 62


@pytest.mark.asyncio
async def test_defer_module_reviews_updates_only_own_modules(session_factory) -> None:
    marker = datetime(2026, 10, 22, 23, 59, 59)

    async with session_factory() as session:
        async with session.begin():
            own, _ = await get_or_create_module(session, 406, ModulePayload(title="Geography"), TODAY)
            other, _ = await get_or_create_module(session, 407, ModulePayload(title="Geography"), TODAY)
            updated = await defer_module_reviews(
                session,
                406,
                {str(own.id): marker, str(other.id): marker},
            )

    assert updated == 1
    assert own.next_review_at == marker
    assert other.next_review_at == datetime(2026, 10, 20, 23, 59, 59)


@pytest.mark.asyncio
async def test_busy_periods_are_filtered_by_kind_and_day(session_factory) -> None:
    chat_id = 408

    async with session_factory() as session:
        async with session.begin():
            sport = await add_busy_period(
                session,
                chat_id,
                BusyInterval(datetime(2026, 10, 20, 18), datetime(2026, 10, 20, 19), " Sport "),
            )
            await replace_school_periods(
                session,
                chat_id,
                [
                    BusyInterval(datetime(2026, 10, 20, 8), datetime(2026, 10, 20, 10), "Maths"),
                    BusyInterval(datetime(2026, 10, 25, 8), datetime(2026, 10, 25, 10), "Maths"),
                    BusyInterval(datetime(2026, 10, 26, 9), datetime(2026, 10, 26, 8), "Broken"),
                ],
            )

        async with session.begin():
            school = await list_busy_periods(session, chat_id, SCHOOL, date(2026, 10, 20), date(2026, 10, 24))
            personal = await list_busy_periods(session, chat_id, PERSONAL)
            everything = await list_busy_periods(session, chat_id)

    assert [period.label for period in school] == ["Maths"]
    assert [period.label for period in personal] == ["Sport"]
    assert len(everything) == 3
    assert sport.kind == PERSONAL


@pytest.mark.asyncio
async def test_school_import_replaces_previous_timetable(session_factory) -> None:
    chat_id = 409

    async with session_factory() as session:
        async with session.begin():
            await replace_school_periods(
                session,
                chat_id,
                [BusyInterval(datetime(2026, 10, 20, 8), datetime(2026, 10, 20, 10), "Old")],
            )
        async with session.begin():
            stored = await replace_school_periods(
                session,
                chat_id,
                [BusyInterval(datetime(2026, 10, 21, 8), datetime(2026, 10, 21, 10), "New")],
            )
        async with session.begin():
            periods = await list_busy_periods(session, chat_id, SCHOOL)

    assert stored == 1
    assert [period.label for period in periods] == ["New"]


@pytest.mark.asyncio
async def test_invalid_busy_periods_are_rejected(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            with pytest.raises(ValueError):
                await add_busy_period(
                    session,
                    410,
                    BusyInterval(datetime(2026, 10, 20, 19), datetime(2026, 10, 20, 18)),
                )
            with pytest.raises(ValueError):
                await add_busy_period(
                    session,
                    410,
                    BusyInterval(datetime(2026, 10, 20, 18), datetime(2026, 10, 20, 19)),
                    kind="holiday",
                )


@pytest.mark.asyncio
async def test_delete_busy_period_requires_owner(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            period = await add_busy_period(
                session,
                411,
                BusyInterval(datetime(2026, 10, 20, 18), datetime(2026, 10, 20, 19), "Music"),
            )
            assert await delete_busy_period(session, 412, period.id) is False
            assert await delete_busy_period(session, 411, period.id) is True
            assert await list_busy_periods(session, 411) == []


@pytest.mark.asyncio
async def test_delete_busy_period_keeps_timetable_classes(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            await replace_school_periods(
                session,
                414,
                [BusyInterval(datetime(2026, 10, 20, 8), datetime(2026, 10, 20, 9), "Biology")],
            )
            [period] = await list_busy_periods(session, 414, SCHOOL)
            assert await delete_busy_period(session, 414, period.id) is False
            assert [record.label for record in await list_busy_periods(session, 414)] == ["Biology"]


@pytest.mark.asyncio
async def test_planned_sessions_are_replaced_within_range(session_factory) -> None:
    chat_id = 413

    async with session_factory() as session:
        async with session.begin():
            record, _ = await get_or_create_module(session, chat_id, ModulePayload(title="Physics"), TODAY)
            module_id = str(record.id)
            first = PlannedSession(
                id=f"{module_id}@2026-10-19T17:00:00",
                module_id=module_id,
                start=datetime(2026, 10, 19, 17),
                end=datetime(2026, 10, 19, 17, 25),
            )
            outside = PlannedSession(
                id=f"{module_id}@2026-10-25T17:00:00",
                module_id=module_id,
                start=datetime(2026, 10, 25, 17),
                end=datetime(2026, 10, 25, 17, 25),
            )
            await replace_planned_sessions(session, chat_id, date(2026, 10, 19), date(2026, 10, 23), [first])
            await replace_planned_sessions(session, chat_id, date(2026, 10, 25), date(2026, 10, 25), [outside])

        async with session.begin():
            replacement = PlannedSession(
                id=f"{module_id}@2026-10-20T18:00:00",
                module_id=module_id,
                start=datetime(2026, 10, 20, 18),
                end=datetime(2026, 10, 20, 18, 25),
            )
            count = await replace_planned_sessions(
                session, chat_id, date(2026, 10, 19), date(2026, 10, 23), [replacement]
            )

        async with session.begin():
            stored = await list_planned_sessions(session, chat_id, date(2026, 10, 19), date(2026, 10, 31))

    assert count == 1
    assert stored == [replacement, outside]
