"""Streak record model"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from progression.utils.datetime_helpers import ensure_utc, now_utc


class StreakRecord(BaseModel):
    """Consecutive-day activity streak for one of a user's goals"""
    user_id: str
    goal_id: str
    current_streak: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)
    last_activity_at: Optional[datetime] = None
    milestones_reached: List[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @field_validator("last_activity_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _best_covers_current(self) -> "StreakRecord":
        if self.best_streak < self.current_streak:
            raise ValueError("best_streak cannot be lower than current_streak")
        return self
