from dataclasses import dataclass
from datetime import date, datetime, timezone
from math import floor
from typing import Optional, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.scheduler.srs import end_of_day

from . import StudyModule, User


PROFILE_FIELDS = ("first_name", "last_name")
ACTIVITY_COUNTERS = ("modules_added", "reviews_completed", "sessions_planned")


@dataclass(slots=True)
class LearnerSummary:
    """Progress of one learner: lifetime activity plus the state of their active modules."""

    chat_id: int
    display_name: str
    member_since: datetime
    modules_added: int
    reviews_completed: int
    sessions_planned: int
    active_modules: int = 0
    due_modules: int = 0
    average_retention: Optional[int] = None
    next_review_on: Optional[date] = None


async def register_learner(
    session: AsyncSession,
    chat_id: int,
    first_name: Optional[str],
    last_name: Optional[str],
) -> Tuple[User, bool]:
    """Return the learner for ``chat_id`` and whether it was just created.

    Known learners get their Telegram names refreshed; nothing is written
    when the names are unchanged.
    """
    learner = await session.get(User, chat_id)
    now = datetime.now(timezone.utc)

    if learner is None:
        learner = User(
            chat_id=chat_id,
            first_name=first_name,
            last_name=last_name,
            created_at=now,
            updated_at=now,
        )
        session.add(learner)
        return learner, True

    profile = dict(zip(PROFILE_FIELDS, (first_name, last_name)))
    stale = {name: value for name, value in profile.items() if getattr(learner, name) != value}
    if stale:
        for name, value in stale.items():
            setattr(learner, name, value)
        learner.updated_at = now
        await session.flush()

    return learner, False


async def record_activity(
    session: AsyncSession,
    chat_id: int,
    *,
    modules_added: int = 0,
    reviews_completed: int = 0,
    sessions_planned: int = 0,
) -> None:
    """Add to the learner's lifetime activity counters in a single UPDATE."""
    deltas = dict(zip(ACTIVITY_COUNTERS, (modules_added, reviews_completed, sessions_planned)))
    values = {name: getattr(User, name) + delta for name, delta in deltas.items() if delta}
    if not values:
        return

    values["updated_at"] = datetime.now(timezone.utc)
    await session.execute(
        update(User)
        .where(User.chat_id == chat_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


async def load_learner_summary(
    session: AsyncSession,
    chat_id: int,
    today: date,
) -> Optional[LearnerSummary]:
    """Summarize a learner's progress; modules due by the end of ``today`` count as due."""
    learner = await session.get(User, chat_id)
    if learner is None:
        return None

    due = case((StudyModule.next_review_at <= end_of_day(today), 1), else_=0)
    stmt = select(
        func.count(StudyModule.id),
        func.sum(due),
        func.avg(StudyModule.retention),
        func.min(StudyModule.next_review_at),
    ).where(StudyModule.chat_id == chat_id, StudyModule.is_active.is_(True))
    active, due_count, retention, earliest = (await session.execute(stmt)).one()

    return LearnerSummary(
        chat_id=learner.chat_id,
        display_name=learner.first_name or learner.last_name or "student",
        member_since=learner.created_at,
        modules_added=learner.modules_added,
        reviews_completed=learner.reviews_completed,
        sessions_planned=learner.sessions_planned,
        active_modules=int(active or 0),
        due_modules=int(due_count or 0),
        average_retention=floor(float(retention) + 0.5) if retention is not None else None,
        next_review_on=earliest.date() if earliest is not None else None,
    )
