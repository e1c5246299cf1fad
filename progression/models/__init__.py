"""Progression record models"""
from progression.models.points import PointsAccount
from progression.models.badge import Badge, BadgeAwardOutcome, BadgeAwardResult, BadgeLevel, BadgeType
from progression.models.streak import StreakRecord
from progression.models.snapshot import GoalTaskResult, ProgressionSnapshot

__all__ = [
    "PointsAccount",
    "Badge",
    "BadgeAwardOutcome",
    "BadgeAwardResult",
    "BadgeLevel",
    "BadgeType",
    "StreakRecord",
    "GoalTaskResult",
    "ProgressionSnapshot",
]
