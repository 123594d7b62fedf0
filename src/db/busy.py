"""Storage of busy periods: imported timetable classes and personal commitments."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.scheduler.models import BusyInterval

from . import BusyPeriod


SCHOOL = "school"
PERSONAL = "personal"
_KINDS = {SCHOOL, PERSONAL}


def to_interval(record: BusyPeriod) -> BusyInterval:
    return BusyInterval(start=record.starts_at, end=record.ends_at, label=record.label)


def _check_kind(kind: str) -> None:
    if kind not in _KINDS:
        raise ValueError(f"Unknown busy period kind: {kind!r}")


async def add_busy_period(
    session: AsyncSession,
    chat_id: int,
    interval: BusyInterval,
    kind: str = PERSONAL,
) -> BusyPeriod:
    """Store one busy period; inverted or empty periods are rejected."""
    _check_kind(kind)
    if not interval.is_valid:
        raise ValueError("A busy period must end after it starts.")

    record = BusyPeriod(
        chat_id=chat_id,
        kind=kind,
        label=interval.label.strip(),
        starts_at=interval.start,
        ends_at=interval.end,
    )
    session.add(record)
    await session.flush()
    return record


async def replace_school_periods(
    session: AsyncSession,
    chat_id: int,
    intervals: Iterable[BusyInterval],
) -> int:
    """Swap the stored timetable for a freshly imported one."""
    await session.execute(
        delete(BusyPeriod).where(BusyPeriod.chat_id == chat_id, BusyPeriod.kind == SCHOOL)
    )
    count = 0
    for interval in intervals:
        if not interval.is_valid:
            continue
        session.add(
            BusyPeriod(
                chat_id=chat_id,
                kind=SCHOOL,
                label=interval.label.strip(),
                starts_at=interval.start,
                ends_at=interval.end,
            )
        )
        count += 1
    await session.flush()
    return count


async def list_busy_periods(
    session: AsyncSession,
    chat_id: int,
    kind: Optional[str] = None,
    start_day: Optional[date] = None,
    end_day: Optional[date] = None,
) -> List[BusyPeriod]:
    """Busy periods starting between ``start_day`` and ``end_day`` inclusive."""
    stmt = select(BusyPeriod).where(BusyPeriod.chat_id == chat_id)
    if kind is not None:
        _check_kind(kind)
        stmt = stmt.where(BusyPeriod.kind == kind)
    if start_day is not None:
        stmt = stmt.where(BusyPeriod.starts_at >= datetime.combine(start_day, time.min))
    if end_day is not None:
        stmt = stmt.where(
            BusyPeriod.starts_at < datetime.combine(end_day + timedelta(days=1), time.min)
        )
    stmt = stmt.order_by(BusyPeriod.starts_at, BusyPeriod.id)
    result = await session.execute(stmt)
    return list(result.scalars())


async def delete_busy_period(session: AsyncSession, chat_id: int, period_id: int) -> bool:
    """Remove a personal commitment owned by ``chat_id``; timetable classes are left alone."""
    record = await session.get(BusyPeriod, period_id)
    if record is None or record.chat_id != chat_id or record.kind != PERSONAL:
        return False
    await session.delete(record)
    await session.flush()
    return True
