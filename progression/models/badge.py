"""Badge models for gamification"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from progression.utils.datetime_helpers import ensure_utc, now_utc


class BadgeLevel(str, Enum):
    """Badge levels, in progression order"""
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"


class BadgeType(str, Enum):
    """Badge types with a known point reward"""
    GOAL_COMPLETED = "goal_completed"
    HELPER = "helper"
    MILESTONE_ACHIEVER = "milestone_achiever"
    CONSISTENCY_MASTER = "consistency_master"
    TIME_BASED = "time_based"
    EVENT_BADGE = "event_badge"


class Badge(BaseModel):
    """A user's badge of one type"""
    user_id: str
    badge_type: str
    level: BadgeLevel = BadgeLevel.BRONZE
    progress: int = Field(default=0, ge=0)
    goal: int = Field(default=1, ge=1)
    description: str = ""
    event: str = ""
    is_showcased: bool = False
    points_rewarded: int = Field(default=0, ge=0)
    expires_at: Optional[datetime] = None
    date_awarded: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @field_validator("expires_at", "date_awarded", "updated_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Expired badges stay stored until swept but are hidden from display"""
        if self.expires_at is None:
            return False
        return self.expires_at < ensure_utc(now or now_utc())


class BadgeAwardOutcome(str, Enum):
    CREATED = "created"
    UPGRADED = "upgraded"
    ALREADY_MAX_LEVEL = "already_max_level"


class BadgeAwardResult(BaseModel):
    """Result of awarding a badge that may already exist"""
    badge: Badge
    outcome: BadgeAwardOutcome
    points_awarded: int = 0
    message: str
