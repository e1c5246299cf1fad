"""Aggregate views returned by the progression service"""
from typing import Optional

from pydantic import BaseModel

from progression.models.badge import Badge
from progression.models.streak import StreakRecord


class ProgressionSnapshot(BaseModel):
    """Read-only view of a user's points, badges and streaks"""
    user_id: str
    points: int
    level: int
    points_to_next_level: Optional[int] = None
    badges: list[Badge] = []
    streaks: list[StreakRecord] = []


class GoalTaskResult(BaseModel):
    """Outcome of a completed goal task"""
    streak: StreakRecord
    milestone_reached: Optional[int] = None
    consistency_badge: Optional[Badge] = None
