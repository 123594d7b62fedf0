"""Service layer wiring storage snapshots to the scheduling core."""

from .planning import PlanningOptions, PlanningService, options_from_settings
from .reviews import ReviewService

__all__ = ["PlanningOptions", "PlanningService", "ReviewService", "options_from_settings"]
