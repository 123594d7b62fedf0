"""Storage of the sessions produced by the latest planning run."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.scheduler.models import PlannedSession

from . import PlannedSessionRecord


def _day_range(start_day: date, end_day: date) -> tuple[datetime, datetime]:
    return (
        datetime.combine(start_day, time.min),
        datetime.combine(end_day + timedelta(days=1), time.min),
    )


async def replace_planned_sessions(
    session: AsyncSession,
    chat_id: int,
    start_day: date,
    end_day: date,
    sessions: Iterable[PlannedSession],
) -> int:
    """Drop the stored plan for the day range and store the new sessions."""
    lower, upper = _day_range(start_day, end_day)
    await session.execute(
        delete(PlannedSessionRecord).where(
            PlannedSessionRecord.chat_id == chat_id,
            PlannedSessionRecord.starts_at >= lower,
            PlannedSessionRecord.starts_at < upper,
        )
    )
    count = 0
    for planned in sessions:
        session.add(
            PlannedSessionRecord(
                chat_id=chat_id,
                module_id=int(planned.module_id),
                session_key=planned.id,
                starts_at=planned.start,
                ends_at=planned.end,
            )
        )
        count += 1
    await session.flush()
    return count


async def list_planned_sessions(
    session: AsyncSession,
    chat_id: int,
    start_day: date,
    end_day: date,
) -> List[PlannedSession]:
    """Stored sessions within the day range, in chronological order."""
    lower, upper = _day_range(start_day, end_day)
    stmt = (
        select(PlannedSessionRecord)
        .where(
            PlannedSessionRecord.chat_id == chat_id,
            PlannedSessionRecord.starts_at >= lower,
            PlannedSessionRecord.starts_at < upper,
        )
        .order_by(PlannedSessionRecord.starts_at, PlannedSessionRecord.id)
    )
    result = await session.execute(stmt)
    return [
        PlannedSession(
            id=record.session_key,
            module_id=str(record.module_id),
            start=record.starts_at,
            end=record.ends_at,
        )
        for record in result.scalars()
    ]
