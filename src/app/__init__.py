"""Application bootstrap helpers for the Study Planner."""

from .runtime import run_bot
from .settings import AppSettings

__all__ = ["run_bot", "AppSettings"]
