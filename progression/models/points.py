"""Points account model"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from progression.utils.datetime_helpers import now_utc


class PointsAccount(BaseModel):
    """A user's point balance and derived level"""
    user_id: str
    points: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    last_activity_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)
