"""
Gamification progression engine

- Level threshold table
- Points ledger (points and derived level)
- Badge state machine (Bronze → Silver → Gold)
- Goal streak tracking
"""

from progression.gamification.thresholds import ThresholdTable, level_for
from progression.gamification.points_ledger import PointsLedger
from progression.gamification.badge_system import (
    BADGE_POINT_REWARDS,
    BadgeStateMachine,
    ProgressMode,
    next_badge_level,
    remaining_progress,
)
from progression.gamification.streak_system import StreakTracker

__all__ = [
    "ThresholdTable",
    "level_for",
    "PointsLedger",
    "BADGE_POINT_REWARDS",
    "BadgeStateMachine",
    "ProgressMode",
    "next_badge_level",
    "remaining_progress",
    "StreakTracker",
]
