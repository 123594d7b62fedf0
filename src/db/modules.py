"""Helpers for persisting learning modules and their review metadata."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.scheduler.models import Difficulty, Module
from src.scheduler.srs import ReviewSchedule, initial_schedule

from . import QuizResultRecord, StudyModule


DEFAULT_ESTIMATED_MINUTES = 25


@dataclass(slots=True)
class ModulePayload:
    """Definition of a module supplied by the learner or inferred from a timetable."""

    title: str
    estimated_minutes: int = DEFAULT_ESTIMATED_MINUTES
    difficulty: Difficulty = Difficulty.INTERMEDIATE

    def normalized(self) -> "ModulePayload":
        """Return a payload with whitespace collapsed in the title."""
        return ModulePayload(
            title=" ".join(self.title.split()),
            estimated_minutes=self.estimated_minutes,
            difficulty=Difficulty.parse(self.difficulty),
        )


def to_snapshot(record: StudyModule) -> Module:
    """Detach a stored module into the plain record the scheduler works on."""
    return Module(
        id=str(record.id),
        title=record.title,
        difficulty=Difficulty.parse(record.difficulty),
        estimated_minutes=record.estimated_minutes,
        repetition_index=record.repetition_index,
        next_review_at=record.next_review_at,
        retention=record.retention,
    )


async def get_module_by_title(
    session: AsyncSession,
    chat_id: int,
    title: str,
) -> Optional[StudyModule]:
    """Find a learner's module by title, ignoring case."""
    stmt = select(StudyModule).where(
        StudyModule.chat_id == chat_id,
        func.lower(StudyModule.title) == " ".join(title.split()).lower(),
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_module(session: AsyncSession, chat_id: int, module_id: int) -> Optional[StudyModule]:
    """Return a module only when it belongs to ``chat_id``."""
    record = await session.get(StudyModule, module_id)
    if record is None or record.chat_id != chat_id:
        return None
    return record


async def get_or_create_module(
    session: AsyncSession,
    chat_id: int,
    payload: ModulePayload,
    today: date,
) -> tuple[StudyModule, bool]:
    """Fetch a learner's module or create it, reactivating it if previously removed."""
    normalized = payload.normalized()

    existing = await get_module_by_title(session, chat_id, normalized.title)
    if existing is not None:
        if not existing.is_active:
            existing.is_active = True
            await session.flush()
        return existing, False

    schedule = initial_schedule(today)
    record = StudyModule(
        chat_id=chat_id,
        title=normalized.title,
        difficulty=normalized.difficulty.value,
        estimated_minutes=normalized.estimated_minutes,
        repetition_index=schedule.repetition_index,
        next_review_at=schedule.next_review_at,
        retention=schedule.retention,
        is_active=True,
    )
    session.add(record)
    await session.flush()
    return record, True


async def list_active_modules(session: AsyncSession, chat_id: int) -> List[StudyModule]:
    """Return the learner's active modules, soonest review first."""
    stmt = (
        select(StudyModule)
        .where(StudyModule.chat_id == chat_id, StudyModule.is_active.is_(True))
        .order_by(StudyModule.next_review_at, StudyModule.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars())


async def record_module_review(
    session: AsyncSession,
    module: StudyModule,
    schedule: ReviewSchedule,
    reviewed_at: datetime,
) -> None:
    """Persist the outcome of a recall event."""
    module.repetition_index = schedule.repetition_index
    module.next_review_at = schedule.next_review_at
    module.retention = schedule.retention
    module.last_review_at = reviewed_at
    await session.flush()


async def defer_module_reviews(
    session: AsyncSession,
    chat_id: int,
    deferred: Mapping[str, datetime],
) -> int:
    """Write planner end-of-day markers back onto the stored modules."""
    if not deferred:
        return 0

    ids = [int(module_id) for module_id in deferred]
    stmt = select(StudyModule).where(StudyModule.chat_id == chat_id, StudyModule.id.in_(ids))
    result = await session.execute(stmt)

    updated = 0
    for record in result.scalars():
        record.next_review_at = deferred[str(record.id)]
        updated += 1
    if updated:
        await session.flush()
    return updated


async def deactivate_module(session: AsyncSession, chat_id: int, module_id: int) -> Optional[StudyModule]:
    """Hide a module from planning without deleting its history.

    Returns the module, or ``None`` when it is unknown or already inactive.
    """
    record = await get_module(session, chat_id, module_id)
    if record is None or not record.is_active:
        return None
    record.is_active = False
    await session.flush()
    return record


async def record_quiz_result(
    session: AsyncSession,
    module: StudyModule,
    score: int,
    taken_at: datetime,
) -> QuizResultRecord:
    """Store a quiz score (clamped to 0-100) for a module."""
    record = QuizResultRecord(
        module_id=module.id,
        score=max(0, min(100, score)),
        taken_at=taken_at,
    )
    session.add(record)
    await session.flush()
    return record


async def list_quiz_results(
    session: AsyncSession,
    module_ids: Iterable[int],
) -> Sequence[QuizResultRecord]:
    """Quiz results for the given modules, in insertion order."""
    ids = list(module_ids)
    if not ids:
        return []
    stmt = (
        select(QuizResultRecord)
        .where(QuizResultRecord.module_id.in_(ids))
        .order_by(QuizResultRecord.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars())
