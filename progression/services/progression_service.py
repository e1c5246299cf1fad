"""
ProgressionService - single entry point for request handlers

Composes the points ledger, badge state machine and streak tracker. Route
handlers translate inbound requests into these calls and serialize the
returned models themselves.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Union

from progression.gamification.badge_system import BadgeStateMachine
from progression.gamification.points_ledger import PointsLedger
from progression.gamification.streak_system import StreakTracker
from progression.models.badge import Badge, BadgeAwardResult, BadgeLevel, BadgeType
from progression.models.points import PointsAccount
from progression.models.snapshot import GoalTaskResult, ProgressionSnapshot

logger = logging.getLogger(__name__)

DEFAULT_CONSISTENCY_MILESTONES = (7, 30, 100)


class ProgressionService:
    """
    Service for progression features.

    Responsibilities:
    - Streak updates for completed goal tasks
    - Consistency badge progress when a streak reaches a milestone
    - Badge events and awards
    - Read-only progression snapshots
    """

    def __init__(
        self,
        ledger: PointsLedger,
        badges: BadgeStateMachine,
        streaks: StreakTracker,
        consistency_milestones: Iterable[int] = DEFAULT_CONSISTENCY_MILESTONES
    ):
        self.ledger = ledger
        self.badges = badges
        self.streaks = streaks
        self.consistency_milestones = frozenset(consistency_milestones)
        logger.debug("ProgressionService initialized")

    async def on_goal_task_completed(
        self,
        user_id: str,
        goal_id: str,
        at: Optional[datetime] = None
    ) -> GoalTaskResult:
        """
        Record a completed goal task.

        Args:
            user_id: User identifier
            goal_id: Goal the task belongs to
            at: Completion time (defaults to now)

        Returns:
            GoalTaskResult with the updated streak and, when a streak
            milestone was reached, the updated consistency badge
        """
        # Streak and badge commit together; lock order is streak, badge, points
        async with self.streaks.store.transaction() as txn:
            streak = await self.streaks.record_activity_in(txn, user_id, goal_id, at)
            result = GoalTaskResult(streak=streak)

            # Streaks move by one, so reaching a milestone means landing on it
            if streak.current_streak in self.consistency_milestones:
                result.milestone_reached = streak.current_streak
                result.streak = await self.streaks.mark_milestone_in(txn, streak, streak.current_streak)
                result.consistency_badge = await self.badges.record_progress_in(
                    txn, user_id, BadgeType.CONSISTENCY_MASTER.value, 1
                )

        if result.milestone_reached:
            logger.info(
                f"User {user_id} reached {streak.current_streak}-day streak on goal {goal_id}"
            )
        return result

    async def on_badge_event(self, user_id: str, badge_type: str, increment: int) -> Badge:
        """Progress toward a badge"""
        return await self.badges.record_progress(user_id, badge_type, increment)

    async def award_badge(
        self,
        user_id: str,
        badge_type: str,
        level: Union[BadgeLevel, str] = BadgeLevel.BRONZE,
        **kwargs
    ) -> BadgeAwardResult:
        return await self.badges.award_new_badge(user_id, badge_type, level, **kwargs)

    async def award_points(self, user_id: str, amount: int) -> PointsAccount:
        return await self.ledger.award(user_id, amount)

    async def sweep_expired_badges(self, now: Optional[datetime] = None) -> int:
        return await self.badges.sweep_expired(now)

    async def leaderboard(self, limit: int = 10) -> List[PointsAccount]:
        return await self.ledger.leaderboard(limit)

    async def get_snapshot(self, user_id: str) -> ProgressionSnapshot:
        """
        Aggregate view of a user's progression.

        Never writes: a user without a points account reads as 0 points at
        level 1.
        """
        account = await self.ledger.peek(user_id)
        points = account.points if account else 0
        level_info = self.ledger.table.level_info(points)

        return ProgressionSnapshot(
            user_id=user_id,
            points=points,
            level=level_info["current_level"],
            points_to_next_level=level_info["points_to_next_level"],
            badges=await self.badges.get_user_badges(user_id),
            streaks=await self.streaks.get_user_streaks(user_id),
        )
