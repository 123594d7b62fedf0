"""Bootstrap logic for running the Telegram bot."""

from __future__ import annotations

import asyncio
import logging

from src.app.settings import AppSettings
from src.bot import StudyPlannerBot, build_application
from src.db import get_session_factory, run_migrations_if_needed
from src.services import options_from_settings


LOGGER = logging.getLogger(__name__)


def _configure_logging(log_level: str) -> None:
    """Set up project-wide logging configuration."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=log_level,
    )


def _ensure_event_loop() -> None:
    """Guarantee that an asyncio event loop exists for the current thread."""
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())


def build_bot(settings: AppSettings) -> StudyPlannerBot:
    """Create the bot handlers bound to the application's database."""
    return StudyPlannerBot(
        get_session_factory(),
        options=options_from_settings(settings),
        horizon_days=settings.horizon_days,
        timezone_name=settings.timezone,
    )


def run_bot(settings: AppSettings) -> None:
    """Start the Telegram bot using the provided settings."""
    _configure_logging(settings.log_level)
    print(f"{settings.app_name} is running in {settings.app_env} mode.")

    try:
        run_migrations_if_needed()
    except Exception:
        LOGGER.exception("Database migrations failed. Aborting startup.")
        raise

    application = build_application(settings.telegram_bot_token, build_bot(settings))

    _ensure_event_loop()

    LOGGER.info(
        "Starting Telegram bot for %s in %s mode (window %02d:00-%02d:00, %s).",
        settings.app_name,
        settings.app_env,
        settings.window_start_hour,
        settings.window_end_hour,
        settings.timezone,
    )
    application.run_polling()
