"""
Goal Streak Tracking System

Tracks consecutive-activity streaks per (user, goal).

Logic:
- First activity starts the streak at 1
- Activity within the streak window (24h by default) of the previous one
  extends the streak
- A longer gap restarts the streak at 1
- best_streak keeps the highest streak ever reached

The window is rolling rather than calendar-based, so the result does not
depend on the user's timezone.
"""

from datetime import datetime, timedelta
from typing import List, Optional
import logging

from progression.db.record_store import STREAK_RECORDS, RecordStore, StoreTransaction, record_key
from progression.exceptions import InvalidArgumentError, RecordNotFoundError
from progression.models.streak import StreakRecord
from progression.utils.datetime_helpers import ensure_utc, now_utc

logger = logging.getLogger(__name__)

DEFAULT_STREAK_WINDOW = timedelta(hours=24)


class StreakTracker:
    """Consecutive-activity streaks per goal"""

    def __init__(self, store: RecordStore, window: timedelta = DEFAULT_STREAK_WINDOW):
        if window <= timedelta(0):
            raise InvalidArgumentError(
                message="streak window must be positive",
                field="window",
                value=window,
                operation="configure_streaks"
            )
        self.store = store
        self.window = window

    async def record_activity(
        self,
        user_id: str,
        goal_id: str,
        at: Optional[datetime] = None
    ) -> StreakRecord:
        """
        Update the streak for a goal when the user completes an activity

        Args:
            user_id: User identifier
            goal_id: Goal identifier
            at: When the activity happened (defaults to now; naive = UTC)

        Returns:
            The updated StreakRecord

        Raises:
            InvalidArgumentError: at is earlier than the last recorded
                activity; the record is left unchanged
        """
        async with self.store.transaction() as txn:
            return await self.record_activity_in(txn, user_id, goal_id, at)

    async def record_activity_in(
        self,
        txn: StoreTransaction,
        user_id: str,
        goal_id: str,
        at: Optional[datetime] = None
    ) -> StreakRecord:
        """Same as record_activity, inside a caller's transaction"""
        at = ensure_utc(at) or now_utc()
        key = record_key(user_id, goal_id)

        record = await txn.get(STREAK_RECORDS, key)
        if record is None:
            streak = StreakRecord(user_id=user_id, goal_id=goal_id)
        else:
            streak = StreakRecord.model_validate(record)

        old_current = streak.current_streak
        last = streak.last_activity_at

        if last is None:
            streak.current_streak = 1
        elif at < last:
            raise InvalidArgumentError(
                message=f"activity at {at.isoformat()} is earlier than last activity {last.isoformat()}",
                field="at",
                value=at,
                user_id=user_id,
                operation="record_activity",
                context={"goal_id": goal_id}
            )
        elif at - last <= self.window:
            streak.current_streak += 1
        else:
            streak.current_streak = 1
            logger.info(
                f"User {user_id} streak broken for goal {goal_id}. "
                f"Was {old_current}, gap was {at - last}"
            )

        streak.best_streak = max(streak.best_streak, streak.current_streak)
        streak.last_activity_at = at
        streak.updated_at = now_utc()

        await txn.put(STREAK_RECORDS, key, streak.model_dump(mode="json"))

        logger.info(
            f"Updated streak for user {user_id}, goal {goal_id}: "
            f"{old_current} → {streak.current_streak} days"
        )
        return streak

    async def mark_milestone_in(self, txn: StoreTransaction, streak: StreakRecord, milestone: int) -> StreakRecord:
        """Record a reached streak milestone; each milestone is kept once, in order reached"""
        if milestone in streak.milestones_reached:
            return streak
        streak.milestones_reached.append(milestone)
        streak.updated_at = now_utc()
        await txn.put(
            STREAK_RECORDS,
            record_key(streak.user_id, streak.goal_id),
            streak.model_dump(mode="json")
        )
        return streak

    async def get_streak(self, user_id: str, goal_id: str) -> StreakRecord:
        """
        Raises:
            RecordNotFoundError: no activity recorded yet for this goal
        """
        record = await self.store.get(STREAK_RECORDS, record_key(user_id, goal_id))
        if record is None:
            raise RecordNotFoundError(
                message=f"No streak for user {user_id} on goal {goal_id}",
                record_type="Streak",
                record_id=goal_id,
                user_id=user_id,
                operation="get_streak"
            )
        return StreakRecord.model_validate(record)

    async def get_user_streaks(self, user_id: str) -> List[StreakRecord]:
        """All of a user's streaks, longest current streak first"""
        streaks = [
            StreakRecord.model_validate(r)
            for r in await self.store.find(STREAK_RECORDS, lambda r: r.get("user_id") == user_id)
        ]
        streaks.sort(key=lambda s: (-s.current_streak, s.goal_id))
        return streaks
