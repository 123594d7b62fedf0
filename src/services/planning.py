"""Planning workflow: loads learner snapshots, runs the scheduler and stores the result."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.busy import PERSONAL, SCHOOL, list_busy_periods, replace_school_periods, to_interval
from src.db.modules import (
    ModulePayload,
    defer_module_reviews,
    get_or_create_module,
    list_active_modules,
    list_quiz_results,
    to_snapshot,
)
from src.db.plans import list_planned_sessions, replace_planned_sessions
from src.db.users import record_activity
from src.scheduler.models import Module, PlannedSession, QuizResult, RiskItem
from src.scheduler.planner import deferred_reviews, plan_range
from src.scheduler.risk import build_last_score_by_module, classify
from src.timetable.ics import parse_ics, to_busy_intervals
from src.timetable.normalize import infer_module_titles

if TYPE_CHECKING:
    from src.app.settings import AppSettings


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanningOptions:
    """Scheduler parameters, usually taken from ``AppSettings``."""

    window_start_hour: int = 17
    window_end_hour: int = 20
    min_slot_minutes: int = 20
    low_score_threshold: int = 70
    soon_days: int = 2
    default_module_minutes: int = 25


@dataclass(slots=True)
class PlanResult:
    """Sessions planned for a range of days, with the modules they refer to."""

    days: List[date]
    sessions: List[PlannedSession]
    modules: Dict[str, Module] = field(default_factory=dict)

    @property
    def unscheduled(self) -> List[Module]:
        planned = {session.module_id for session in self.sessions}
        last_day = self.days[-1] if self.days else None
        return [
            module
            for module_id, module in self.modules.items()
            if module_id not in planned and last_day is not None and module.next_review_at.date() <= last_day
        ]


@dataclass(slots=True)
class ImportResult:
    busy_periods: int
    created_modules: List[str]


class PlanningService:
    """Coordinates storage snapshots and the pure scheduling core."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        options: Optional[PlanningOptions] = None,
    ) -> None:
        self._session_factory = session_factory
        self._options = options or PlanningOptions()

    async def plan(self, chat_id: int, start_day: date, days: int) -> PlanResult:
        """Plan the next ``days`` days starting at ``start_day`` and store the plan."""
        day_list = _day_list(start_day, days)
        if not day_list:
            return PlanResult(days=[], sessions=[])
        end_day = day_list[-1]

        async with self._session_factory() as session:
            async with session.begin():
                records = await list_active_modules(session, chat_id)
                modules = [to_snapshot(record) for record in records]
                school = [
                    to_interval(period)
                    for period in await list_busy_periods(session, chat_id, SCHOOL, start_day, end_day)
                ]
                personal = [
                    to_interval(period)
                    for period in await list_busy_periods(session, chat_id, PERSONAL, start_day, end_day)
                ]

                sessions = plan_range(
                    day_list,
                    modules,
                    school,
                    personal,
                    window_start_hour=self._options.window_start_hour,
                    window_end_hour=self._options.window_end_hour,
                    min_slot_minutes=self._options.min_slot_minutes,
                )

                await replace_planned_sessions(session, chat_id, start_day, end_day, sessions)
                await defer_module_reviews(session, chat_id, deferred_reviews(sessions))
                await record_activity(session, chat_id, sessions_planned=len(sessions))

        LOGGER.info(
            "Planned %s session(s) for chat %s between %s and %s.",
            len(sessions),
            chat_id,
            start_day.isoformat(),
            end_day.isoformat(),
        )
        return PlanResult(
            days=day_list,
            sessions=sessions,
            modules={module.id: module for module in modules},
        )

    async def stored_plan(self, chat_id: int, start_day: date, days: int) -> PlanResult:
        """Return the sessions kept from earlier planning runs, without replanning.

        Sessions of modules that were removed since are left out.
        """
        day_list = _day_list(start_day, days)
        if not day_list:
            return PlanResult(days=[], sessions=[])

        async with self._session_factory() as session:
            stored = await list_planned_sessions(session, chat_id, start_day, day_list[-1])
            active = {str(record.id): to_snapshot(record) for record in await list_active_modules(session, chat_id)}

        sessions = [planned for planned in stored if planned.module_id in active]
        return PlanResult(
            days=day_list,
            sessions=sessions,
            modules={planned.module_id: active[planned.module_id] for planned in sessions},
        )

    async def risk_report(self, chat_id: int, today: date) -> List[RiskItem]:
        """Classify the learner's modules by urgency."""
        async with self._session_factory() as session:
            records = await list_active_modules(session, chat_id)
            results = await list_quiz_results(session, [record.id for record in records])

        last_scores = build_last_score_by_module(
            QuizResult(module_id=str(result.module_id), score=result.score, taken_on=result.taken_at.date())
            for result in results
        )
        return classify(
            [to_snapshot(record) for record in records],
            last_scores,
            today,
            low_score_threshold=self._options.low_score_threshold,
            soon_days=self._options.soon_days,
        )

    async def import_school_calendar(
        self,
        chat_id: int,
        ics_text: str,
        today: date,
        tz: Optional[tzinfo] = None,
    ) -> ImportResult:
        """Replace the stored timetable and add a module for every new class label."""
        intervals = to_busy_intervals(parse_ics(ics_text, tz))

        async with self._session_factory() as session:
            async with session.begin():
                stored = await replace_school_periods(session, chat_id, intervals)
                existing = [record.title for record in await list_active_modules(session, chat_id)]
                created: List[str] = []
                for title in infer_module_titles(intervals, existing):
                    record, was_created = await get_or_create_module(
                        session,
                        chat_id,
                        ModulePayload(title=title, estimated_minutes=self._options.default_module_minutes),
                        today,
                    )
                    if was_created:
                        created.append(record.title)
                await record_activity(session, chat_id, modules_added=len(created))

        LOGGER.info(
            "Imported %s timetable period(s) for chat %s; %s new module(s).",
            stored,
            chat_id,
            len(created),
        )
        return ImportResult(busy_periods=stored, created_modules=created)


def options_from_settings(settings: "AppSettings") -> PlanningOptions:
    return PlanningOptions(
        window_start_hour=settings.window_start_hour,
        window_end_hour=settings.window_end_hour,
        min_slot_minutes=settings.min_slot_minutes,
        low_score_threshold=settings.low_score_threshold,
        soon_days=settings.soon_days,
        default_module_minutes=settings.default_module_minutes,
    )


def sessions_by_day(sessions: Sequence[PlannedSession]) -> Dict[date, List[PlannedSession]]:
    grouped: Dict[date, List[PlannedSession]] = {}
    for planned in sessions:
        grouped.setdefault(planned.start.date(), []).append(planned)
    return grouped


def _day_list(start_day: date, days: int) -> List[date]:
    return [start_day + timedelta(days=offset) for offset in range(max(0, days))]
