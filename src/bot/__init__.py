"""Telegram bot components for the Study Planner."""

from .planner_bot import StudyPlannerBot
from .telegram import build_application

__all__ = ["StudyPlannerBot", "build_application"]
