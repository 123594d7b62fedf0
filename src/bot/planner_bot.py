"""Telegram handlers exposing the study planner to a learner."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from html import escape
from io import BytesIO
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.ext import ContextTypes

from src.db.busy import PERSONAL, add_busy_period, delete_busy_period, list_busy_periods
from src.db.modules import ModulePayload, deactivate_module, get_or_create_module, list_active_modules
from src.db.users import LearnerSummary, load_learner_summary, record_activity, register_learner
from src.scheduler.models import Difficulty, RiskItem, RiskLevel
from src.scheduler.risk import only_at_risk
from src.scheduler.srs import InvalidRecallGrade, RecallGrade
from src.services.planning import PlanResult, PlanningOptions, PlanningService, sessions_by_day
from src.services.reviews import ReviewService
from src.timetable.ics import InvalidCalendar
from src.timetable.normalize import UnrecognizedRecord, normalize_activity


LOGGER = logging.getLogger(__name__)

MAX_MODULE_MINUTES = 240

_RISK_ICONS = {
    RiskLevel.OVERDUE: "🔴",
    RiskLevel.LOW_SCORE: "🟠",
    RiskLevel.SOON: "🟡",
    RiskLevel.OK: "🟢",
}
_GRADE_LABELS = (
    (RecallGrade.EASY, "Easy"),
    (RecallGrade.MEDIUM, "Medium"),
    (RecallGrade.HARD, "Hard"),
)


class StudyPlannerBot:
    """Handles Telegram commands by delegating to the planning and review services."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        options: Optional[PlanningOptions] = None,
        horizon_days: int = 5,
        timezone_name: str = "Europe/Zurich",
    ) -> None:
        self._session_factory = session_factory
        self._options = options or PlanningOptions()
        self._horizon_days = horizon_days
        self._zone = ZoneInfo(timezone_name)
        self._planning = PlanningService(session_factory, self._options)
        self._reviews = ReviewService(session_factory)

    def _today(self) -> date:
        return datetime.now(self._zone).date()

    def _local_now(self) -> datetime:
        return datetime.now(self._zone).replace(tzinfo=None)

    async def _store_user_profile(self, update: Update, chat_id: int) -> None:
        """Register the learner behind the chat, refreshing their Telegram names."""
        user = update.effective_user
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    _, created = await register_learner(
                        session,
                        chat_id,
                        getattr(user, "first_name", None),
                        getattr(user, "last_name", None),
                    )
        except Exception:  # pragma: no cover - guardrail against database issues
            LOGGER.exception("Failed to register learner for chat %s.", chat_id)
            return
        if created:
            LOGGER.info("Registered new learner for chat %s.", chat_id)

    async def _fetch_learner_summary(self, chat_id: int) -> Optional[LearnerSummary]:
        try:
            async with self._session_factory() as session:
                return await load_learner_summary(session, chat_id, self._today())
        except Exception:  # pragma: no cover - guardrail against database issues
            LOGGER.exception("Failed to load progress summary for chat %s.", chat_id)
            return None

    @staticmethod
    def _parse_id(args: Sequence[str]) -> Optional[int]:
        try:
            return int(args[0].lstrip("#"))
        except (IndexError, ValueError):
            return None

    async def handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Describe the available commands."""
        if not update.message or update.effective_chat is None:
            return

        await self._store_user_profile(update, update.effective_chat.id)

        greeting = (
            "Hi! I plan your review sessions around classes and personal commitments.\n"
            "- /add <minutes> <title> adds a module to review, /remove <id> drops it;\n"
            "- /modules lists your modules;\n"
            "- /busy YYYY-MM-DD HH:MM-HH:MM <label> blocks a personal commitment;\n"
            "- /busy alone lists your commitments, /unbusy <id> frees one;\n"
            "- send an .ics file to import your school timetable;\n"
            "- /plan schedules the next days, /schedule shows the saved plan;\n"
            "- /risk shows what needs attention;\n"
            "- /review <id> [score 0-100] records how well you remembered a module;\n"
            "- /stat shows your progress."
        )
        await update.message.reply_text(greeting)

    async def handle_add(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Add a module: ``/add <minutes> <title> [beginner|intermediate|advanced]``."""
        if not update.message or update.effective_chat is None:
            return
        chat_id = update.effective_chat.id
        args: List[str] = list(getattr(context, "args", None) or [])

        payload = self._parse_module_args(args)
        if payload is None:
            await update.message.reply_text(
                f"Usage: /add <minutes 1-{MAX_MODULE_MINUTES}> <title> [beginner|intermediate|advanced]"
            )
            return

        await self._store_user_profile(update, chat_id)
        async with self._session_factory() as session:
            async with session.begin():
                record, created = await get_or_create_module(session, chat_id, payload, self._today())
                if created:
                    await record_activity(session, chat_id, modules_added=1)
                next_review = record.next_review_at.date()
                title = record.title

        if created:
            text = f"Added <b>{escape(title)}</b>. First review on {next_review.isoformat()}."
        else:
            text = f"<b>{escape(title)}</b> is already in your modules."
        await update.message.reply_text(text, parse_mode=ParseMode.HTML)

    @staticmethod
    def _parse_module_args(args: Sequence[str]) -> Optional[ModulePayload]:
        if len(args) < 2:
            return None
        try:
            minutes = int(args[0])
        except ValueError:
            return None
        if minutes < 1 or minutes > MAX_MODULE_MINUTES:
            return None

        words = list(args[1:])
        difficulty = Difficulty.INTERMEDIATE
        if len(words) > 1:
            try:
                difficulty = Difficulty.parse(words[-1])
                words = words[:-1]
            except ValueError:
                pass
        title = " ".join(words).strip()
        if not title:
            return None
        return ModulePayload(title=title, estimated_minutes=minutes, difficulty=difficulty)

    async def handle_modules(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """List the learner's active modules."""
        if not update.message or update.effective_chat is None:
            return

        async with self._session_factory() as session:
            records = await list_active_modules(session, update.effective_chat.id)

        if not records:
            await update.message.reply_text("No modules yet. Add one with /add 25 <title>.")
            return

        lines = ["📚 <b>Your modules</b>"]
        for record in records:
            lines.append(
                f"#{record.id} <b>{escape(record.title)}</b>: {record.estimated_minutes} min, "
                f"next review {record.next_review_at.date().isoformat()}, retention {record.retention}%"
            )
        await update.message.reply_text("\n".join(lines), parse_mode=ParseMode.HTML)

    async def handle_remove(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Stop planning a module: ``/remove <module id>``. Its history is kept."""
        if not update.message or update.effective_chat is None:
            return
        chat_id = update.effective_chat.id
        module_id = self._parse_id(list(getattr(context, "args", None) or []))
        if module_id is None:
            await update.message.reply_text("Usage: /remove <module id> (see /modules)")
            return

        async with self._session_factory() as session:
            async with session.begin():
                record = await deactivate_module(session, chat_id, module_id)
                title = record.title if record is not None else None

        if title is None:
            await update.message.reply_text(f"No active module #{module_id}.")
            return
        LOGGER.info("Deactivated module %s for chat %s.", module_id, chat_id)
        await update.message.reply_text(
            f"Removed <b>{escape(title)}</b> from your modules.", parse_mode=ParseMode.HTML
        )

    async def handle_busy(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Block a personal commitment: ``/busy 2026-01-12 18:00-19:00 Sport``.

        Without arguments the upcoming commitments are listed.
        """
        if not update.message or update.effective_chat is None:
            return
        chat_id = update.effective_chat.id
        args: List[str] = list(getattr(context, "args", None) or [])
        usage = "Usage: /busy YYYY-MM-DD HH:MM-HH:MM <label>"

        if not args:
            await self._reply_commitments(update, chat_id)
            return

        if len(args) < 2 or "-" not in args[1]:
            await update.message.reply_text(usage)
            return

        start_time, _, end_time = args[1].partition("-")
        try:
            interval = normalize_activity(
                {
                    "date": args[0],
                    "start_time": start_time,
                    "end_time": end_time,
                    "label": " ".join(args[2:]),
                }
            )
        except UnrecognizedRecord:
            await update.message.reply_text(usage)
            return

        if not interval.is_valid:
            await update.message.reply_text("The commitment must end after it starts.")
            return

        await self._store_user_profile(update, chat_id)
        async with self._session_factory() as session:
            async with session.begin():
                record = await add_busy_period(session, chat_id, interval, kind=PERSONAL)
                period_id = record.id

        await update.message.reply_text(
            f"Blocked #{period_id} {interval.start:%Y-%m-%d %H:%M}-{interval.end:%H:%M}"
            + (f" ({interval.label})" if interval.label else "")
            + "."
        )

    async def _reply_commitments(self, update: Update, chat_id: int) -> None:
        async with self._session_factory() as session:
            periods = await list_busy_periods(session, chat_id, PERSONAL, start_day=self._today())

        if not periods:
            await update.message.reply_text("No upcoming commitments.")
            return

        lines = ["📌 <b>Your commitments</b>"]
        for period in periods:
            line = f"#{period.id} {period.starts_at:%Y-%m-%d %H:%M}-{period.ends_at:%H:%M}"
            if period.label:
                line += f" {escape(period.label)}"
            lines.append(line)
        await update.message.reply_text("\n".join(lines), parse_mode=ParseMode.HTML)

    async def handle_unbusy(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Free a personal commitment: ``/unbusy <id>``."""
        if not update.message or update.effective_chat is None:
            return
        chat_id = update.effective_chat.id
        period_id = self._parse_id(list(getattr(context, "args", None) or []))
        if period_id is None:
            await update.message.reply_text("Usage: /unbusy <commitment id> (see /busy)")
            return

        async with self._session_factory() as session:
            async with session.begin():
                removed = await delete_busy_period(session, chat_id, period_id)

        if not removed:
            await update.message.reply_text(f"No personal commitment #{period_id}.")
            return
        await update.message.reply_text(f"Commitment #{period_id} removed. Run /plan to use the free time.")

    async def handle_document(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Import an uploaded .ics timetable."""
        message = update.message
        if message is None or message.document is None or update.effective_chat is None:
            return
        chat_id = update.effective_chat.id

        file_name = (message.document.file_name or "").lower()
        if not file_name.endswith(".ics"):
            await message.reply_text("Send your timetable as an .ics file.")
            return

        await self._store_user_profile(update, chat_id)
        try:
            raw = await self._download_file_bytes(context, message.document.file_id)
        except Exception:  # pragma: no cover - network errors
            LOGGER.exception("Failed to download timetable for chat %s.", chat_id)
            await message.reply_text("Could not fetch the file. Please send it again.")
            return

        try:
            ics_text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            await message.reply_text("The timetable file is not valid UTF-8 text.")
            return

        try:
            result = await self._planning.import_school_calendar(
                chat_id, ics_text, self._today(), tz=self._zone
            )
        except InvalidCalendar:
            await message.reply_text("This file does not look like an iCalendar timetable.")
            return

        lines = [f"Imported {result.busy_periods} class period(s)."]
        if result.created_modules:
            lines.append("New modules: " + ", ".join(result.created_modules))
        await message.reply_text("\n".join(lines))

    async def _download_file_bytes(
        self,
        context: ContextTypes.DEFAULT_TYPE,
        file_id: str,
    ) -> bytes:
        """Download a Telegram file by file_id and return its raw bytes."""
        telegram_file = await context.bot.get_file(file_id)
        buffer = BytesIO()
        await telegram_file.download_to_memory(out=buffer)
        return buffer.getvalue()

    async def handle_plan(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Plan the next days and show the sessions."""
        if not update.message or update.effective_chat is None:
            return

        await self._store_user_profile(update, update.effective_chat.id)
        result = await self._planning.plan(update.effective_chat.id, self._today(), self._horizon_days)
        await update.message.reply_text(self._format_plan(result), parse_mode=ParseMode.HTML)

    async def handle_schedule(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Show the saved plan without replanning."""
        if not update.message or update.effective_chat is None:
            return

        result = await self._planning.stored_plan(update.effective_chat.id, self._today(), self._horizon_days)
        if not result.sessions:
            await update.message.reply_text("No saved sessions. Run /plan to schedule the coming days.")
            return
        await update.message.reply_text(self._format_plan(result), parse_mode=ParseMode.HTML)

    @staticmethod
    def _format_plan(result: PlanResult) -> str:
        if not result.sessions:
            return "Nothing to schedule in the coming days. 🎉"

        grouped = sessions_by_day(result.sessions)
        lines = ["🗓 <b>Review plan</b>"]
        for day in result.days:
            day_sessions = grouped.get(day)
            if not day_sessions:
                continue
            lines.append("")
            lines.append(f"<b>{day:%A %d.%m}</b>")
            for planned in day_sessions:
                module = result.modules.get(planned.module_id)
                title = module.title if module else planned.module_id
                lines.append(f"{planned.start:%H:%M}-{planned.end:%H:%M} {escape(title)}")

        unscheduled = result.unscheduled
        if unscheduled:
            lines.append("")
            lines.append(
                "Not enough free time for: " + ", ".join(escape(module.title) for module in unscheduled)
            )
        return "\n".join(lines)

    async def handle_risk(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Show the modules that need attention, most urgent first."""
        if not update.message or update.effective_chat is None:
            return

        chat_id = update.effective_chat.id
        items = only_at_risk(await self._planning.risk_report(chat_id, self._today()))
        if not items:
            await update.message.reply_text("All modules are on track. ✅")
            return

        await update.message.reply_text(self._format_risk(items), parse_mode=ParseMode.HTML)

    @staticmethod
    def _format_risk(items: Sequence[RiskItem]) -> str:
        lines = ["⚠️ <b>Modules at risk</b>"]
        for item in items:
            title = item.title or item.module_id
            lines.append(f"{_RISK_ICONS[item.risk_level]} <b>{escape(title)}</b>: {escape(item.reason)}")
        return "\n".join(lines)

    async def handle_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Offer recall grade buttons for ``/review <module id> [quiz score 0-100]``."""
        if not update.message or update.effective_chat is None:
            return
        args: List[str] = list(getattr(context, "args", None) or [])
        module_id = self._parse_id(args)
        score = self._parse_score(args[1:])
        if module_id is None or len(args) > 2 or (len(args) == 2 and score is None):
            await update.message.reply_text("Usage: /review <module id> [score 0-100] (see /modules)")
            return

        await update.message.reply_text(
            "How well did you remember it?",
            reply_markup=self._build_grade_keyboard(module_id, score),
        )

    @staticmethod
    def _parse_score(args: Sequence[str]) -> Optional[int]:
        if not args:
            return None
        try:
            score = int(args[0].rstrip("%"))
        except ValueError:
            return None
        return score if 0 <= score <= 100 else None

    @staticmethod
    def _build_grade_keyboard(module_id: int, score: Optional[int] = None) -> InlineKeyboardMarkup:
        suffix = f":{score}" if score is not None else ""
        buttons = [
            InlineKeyboardButton(label, callback_data=f"rv:{module_id}:{grade.value}{suffix}")
            for grade, label in _GRADE_LABELS
        ]
        return InlineKeyboardMarkup([buttons])

    async def handle_rate_module(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query is None or query.data is None:
            return

        # rv:<module id>:<grade>[:<quiz score>]
        parts = query.data.split(":")
        if len(parts) not in (3, 4) or parts[0] != "rv":
            await query.answer()
            return

        message = query.message
        if message is None or message.chat is None:
            await query.answer()
            return

        score = self._parse_score(parts[3:])
        if len(parts) == 4 and score is None:
            await query.answer("Invalid score.", show_alert=True)
            return

        try:
            module_id = int(parts[1])
            outcome = await self._reviews.record_recall(
                message.chat.id,
                module_id,
                parts[2],
                reference_day=self._today(),
                score=score,
                now=self._local_now(),
            )
        except (ValueError, InvalidRecallGrade):
            await query.answer("Unknown grade.", show_alert=True)
            return

        if outcome is None:
            await query.answer("Module not found.", show_alert=True)
            return

        try:
            await query.edit_message_reply_markup(reply_markup=None)
        except Exception:  # pragma: no cover - best effort cleanup
            LOGGER.debug("Could not clear review grade markup.", exc_info=True)

        await query.answer("Saved.")
        schedule = outcome.schedule
        text = (
            f"<b>{escape(outcome.title)}</b>: next review {self._describe_interval(schedule.interval_days)} "
            f"({schedule.next_review_at.date().isoformat()}), retention {schedule.retention}%."
        )
        if score is not None:
            text += f"\nQuiz score {score}% saved."
        await message.reply_text(text, parse_mode=ParseMode.HTML)

    async def handle_stat(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Present a progress summary for the current user."""
        if not update.message or update.effective_chat is None:
            return

        chat_id = update.effective_chat.id
        await self._store_user_profile(update, chat_id)
        summary = await self._fetch_learner_summary(chat_id)
        if summary is None:
            await update.message.reply_text("Statistics will appear after your first sessions.")
            return

        member_since = summary.member_since
        if member_since.tzinfo is None:
            member_since = member_since.replace(tzinfo=timezone.utc)

        message_lines = [
            "📊 <b>Study statistics</b>",
            f"👤 {escape(summary.display_name)}",
            f"🗓 Since {member_since.astimezone(self._zone):%d.%m.%Y}",
            "",
            f"📚 <b>Active modules:</b> {summary.active_modules} ({summary.due_modules} due)",
        ]
        if summary.average_retention is not None:
            message_lines.append(f"🧠 <b>Average retention:</b> {summary.average_retention}%")
        if summary.next_review_on is not None:
            message_lines.append(f"⏭ <b>Next review:</b> {summary.next_review_on.isoformat()}")
        message_lines.extend(
            [
                "",
                f"➕ <b>Modules added:</b> {summary.modules_added}",
                f"🔁 <b>Reviews completed:</b> {summary.reviews_completed}",
                f"🗓 <b>Sessions planned:</b> {summary.sessions_planned}",
            ]
        )
        await update.message.reply_text("\n".join(message_lines), parse_mode=ParseMode.HTML)

    @staticmethod
    def _describe_interval(interval_days: int) -> str:
        if interval_days <= 0:
            return "very soon"
        if interval_days == 1:
            return "in 1 day"
        if interval_days % 7 == 0:
            weeks = interval_days // 7
            return "in 1 week" if weeks == 1 else f"in {weeks} weeks"
        return f"in {interval_days} days"
