"""Recording of quiz recall events against stored modules."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.modules import get_module, record_module_review, record_quiz_result
from src.db.users import record_activity
from src.scheduler.srs import RecallGrade, ReviewSchedule, calculate_next_review


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReviewOutcome:
    """What a recall event changed on a module."""

    module_id: int
    title: str
    grade: RecallGrade
    schedule: ReviewSchedule


class ReviewService:
    """Applies the spaced-repetition model to a module and persists the result."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record_recall(
        self,
        chat_id: int,
        module_id: int,
        recall: RecallGrade | str,
        reference_day: date,
        score: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Optional[ReviewOutcome]:
        """Update a module after a quiz; returns ``None`` when the module is unknown.

        Raises ``InvalidRecallGrade`` before touching storage when ``recall``
        is not a supported grade.
        """
        grade = RecallGrade.parse(recall)
        if now is None:
            now = datetime.now()

        async with self._session_factory() as session:
            async with session.begin():
                module = await get_module(session, chat_id, module_id)
                if module is None:
                    return None

                schedule = calculate_next_review(
                    repetition_index=module.repetition_index,
                    recall=grade,
                    reference_day=reference_day,
                )
                await record_module_review(session, module, schedule, reviewed_at=now)
                if score is not None:
                    await record_quiz_result(session, module, score, taken_at=now)
                await record_activity(session, chat_id, reviews_completed=1)
                title = module.title

        LOGGER.info(
            "Module %s of chat %s reviewed as %s; next review on %s.",
            module_id,
            chat_id,
            grade.value,
            schedule.next_review_at.date().isoformat(),
        )
        return ReviewOutcome(module_id=module_id, title=title, grade=grade, schedule=schedule)
