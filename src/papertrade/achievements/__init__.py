"""Achievement catalog and progress recompute."""

from .catalog import DEFAULT_ACHIEVEMENTS, AchievementDefinition, AchievementMetric
from .recompute import (
    AchievementStatus,
    achievement_statuses,
    compute_progress,
    recompute_achievements,
)

__all__ = [
    "DEFAULT_ACHIEVEMENTS",
    "AchievementDefinition",
    "AchievementMetric",
    "AchievementStatus",
    "achievement_statuses",
    "compute_progress",
    "recompute_achievements",
]
