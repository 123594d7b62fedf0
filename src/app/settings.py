"""Configuration helpers for the Study Planner runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


DEFAULT_TIMEZONE = "Europe/Zurich"


def _int_from_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer.") from exc


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    telegram_bot_token: str
    window_start_hour: int = 17
    window_end_hour: int = 20
    min_slot_minutes: int = 20
    horizon_days: int = 5
    low_score_threshold: int = 70
    soon_days: int = 2
    default_module_minutes: int = 25
    timezone: str = DEFAULT_TIMEZONE

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", "Study Planner")
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO")
        telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN")

        if not telegram_bot_token:
            raise RuntimeError(
                "TELEGRAM_BOT_TOKEN environment variable is required to start the Telegram bot."
            )

        window_start_hour = _int_from_env("PLANNER_WINDOW_START_HOUR", 17)
        window_end_hour = _int_from_env("PLANNER_WINDOW_END_HOUR", 20)
        if not 0 <= window_start_hour < window_end_hour <= 24:
            raise RuntimeError(
                "PLANNER_WINDOW_START_HOUR and PLANNER_WINDOW_END_HOUR must satisfy 0 <= start < end <= 24."
            )

        min_slot_minutes = _int_from_env("PLANNER_MIN_SLOT_MINUTES", 20)
        if min_slot_minutes < 1:
            raise RuntimeError("PLANNER_MIN_SLOT_MINUTES must be a positive integer.")

        horizon_days = _int_from_env("PLANNER_HORIZON_DAYS", 5)
        if horizon_days < 1 or horizon_days > 31:
            raise RuntimeError("PLANNER_HORIZON_DAYS must be between 1 and 31.")

        low_score_threshold = _int_from_env("RISK_LOW_SCORE_THRESHOLD", 70)
        if low_score_threshold < 0 or low_score_threshold > 100:
            raise RuntimeError("RISK_LOW_SCORE_THRESHOLD must be between 0 and 100.")

        soon_days = _int_from_env("RISK_SOON_DAYS", 2)
        if soon_days < 0:
            raise RuntimeError("RISK_SOON_DAYS must not be negative.")

        default_module_minutes = _int_from_env("DEFAULT_MODULE_MINUTES", 25)
        if default_module_minutes < 1:
            raise RuntimeError("DEFAULT_MODULE_MINUTES must be a positive integer.")

        timezone_name = os.getenv("PLANNER_TIMEZONE", DEFAULT_TIMEZONE)
        try:
            ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise RuntimeError(f"PLANNER_TIMEZONE {timezone_name!r} is not a known time zone.") from exc

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            telegram_bot_token=telegram_bot_token,
            window_start_hour=window_start_hour,
            window_end_hour=window_end_hour,
            min_slot_minutes=min_slot_minutes,
            horizon_days=horizon_days,
            low_score_threshold=low_score_threshold,
            soon_days=soon_days,
            default_module_minutes=default_module_minutes,
            timezone=timezone_name,
        )
