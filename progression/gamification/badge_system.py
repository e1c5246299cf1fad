"""
Badge State Machine

Each (user, badge type) pair holds one badge that moves through
Bronze -> Silver -> Gold. Progress accumulates toward the badge goal; when it
reaches the goal the badge advances a level and the badge-type reward is
credited to the user's points in the same store transaction.

Gold is terminal: progress is capped at the goal and no further rewards are
paid.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union
import logging

from progression.db.record_store import BADGES, RecordStore, StoreTransaction, record_key
from progression.exceptions import InvalidArgumentError, RecordNotFoundError
from progression.gamification.points_ledger import PointsLedger, validate_positive_int
from progression.models.badge import (
    Badge,
    BadgeAwardOutcome,
    BadgeAwardResult,
    BadgeLevel,
    BadgeType,
)
from progression.utils.datetime_helpers import ensure_utc, now_utc

logger = logging.getLogger(__name__)

BADGE_LEVELS: List[BadgeLevel] = [BadgeLevel.BRONZE, BadgeLevel.SILVER, BadgeLevel.GOLD]

BADGE_POINT_REWARDS: Dict[str, int] = {
    BadgeType.GOAL_COMPLETED.value: 50,
    BadgeType.HELPER.value: 30,
    BadgeType.MILESTONE_ACHIEVER.value: 100,
    BadgeType.CONSISTENCY_MASTER.value: 75,
    BadgeType.TIME_BASED.value: 40,
    BadgeType.EVENT_BADGE.value: 20,
}


class ProgressMode(str, Enum):
    """What happens to progress when a badge levels up"""
    CARRY_OVER = "carry_over"
    RESET = "reset"


def coerce_badge_level(level: Union[BadgeLevel, str]) -> BadgeLevel:
    try:
        return BadgeLevel(level)
    except ValueError:
        raise InvalidArgumentError(
            message=f"unknown badge level {level!r}",
            field="level",
            value=level,
            operation="badge_level_lookup"
        )


def next_badge_level(level: Union[BadgeLevel, str]) -> BadgeLevel:
    """Next level up; Gold stays Gold"""
    index = BADGE_LEVELS.index(coerce_badge_level(level))
    return BADGE_LEVELS[min(index + 1, len(BADGE_LEVELS) - 1)]


def points_for_badge(badge_type: str, rewards: Dict[str, int] = BADGE_POINT_REWARDS) -> int:
    """Reward per level-up; unknown badge types earn nothing"""
    return rewards.get(str(badge_type), 0)


def remaining_progress(badge: Badge) -> int:
    """Progress still needed for the next level (0 at Gold or when due)"""
    if badge.level == BadgeLevel.GOLD:
        return 0
    return max(badge.goal - badge.progress, 0)


def apply_progress(badge: Badge, increment: int, mode: ProgressMode = ProgressMode.CARRY_OVER) -> int:
    """
    Add progress and perform any level-ups it triggers

    Mutates badge in place.

    Returns:
        Number of levels gained
    """
    badge.progress += increment
    level_ups = 0

    while badge.progress >= badge.goal and badge.level != BadgeLevel.GOLD:
        badge.level = next_badge_level(badge.level)
        level_ups += 1
        if mode == ProgressMode.RESET:
            badge.progress = 0
            break
        badge.progress -= badge.goal

    if badge.level == BadgeLevel.GOLD:
        badge.progress = min(badge.progress, badge.goal)

    return level_ups


class BadgeStateMachine:
    """Badge progress, awards and expiry"""

    def __init__(
        self,
        store: RecordStore,
        ledger: PointsLedger,
        rewards: Optional[Dict[str, int]] = None,
        default_goals: Optional[Dict[str, int]] = None,
        progress_mode: ProgressMode = ProgressMode.CARRY_OVER
    ):
        self.store = store
        self.ledger = ledger
        self.rewards = dict(BADGE_POINT_REWARDS if rewards is None else rewards)
        self.default_goals = dict(default_goals or {})
        self.progress_mode = ProgressMode(progress_mode)

        for badge_type, goal in self.default_goals.items():
            validate_positive_int(goal, f"default goal for {badge_type}", "configure_badges")

    def reward_for(self, badge_type: str) -> int:
        return points_for_badge(badge_type, self.rewards)

    def _new_badge(
        self,
        user_id: str,
        badge_type: str,
        level: BadgeLevel = BadgeLevel.BRONZE,
        goal: Optional[int] = None,
        **fields
    ) -> Badge:
        return Badge(
            user_id=user_id,
            badge_type=badge_type,
            level=level,
            goal=goal or self.default_goals.get(badge_type, 1),
            **fields
        )

    async def record_progress(
        self,
        user_id: str,
        badge_type: str,
        increment: int,
        goal: Optional[int] = None
    ) -> Badge:
        """
        Add progress to a badge, levelling it up as often as the progress allows

        A missing badge is created with goal `goal`, the configured default for
        its type, or 1. `goal` is ignored for existing badges.

        Args:
            user_id: User identifier
            badge_type: Badge type (unknown types are allowed and earn 0 points)
            increment: Positive integer progress to add
            goal: Goal for a newly created badge

        Returns:
            The updated Badge

        Raises:
            InvalidArgumentError: increment or goal is not a positive integer
        """
        async with self.store.transaction() as txn:
            return await self.record_progress_in(txn, user_id, badge_type, increment, goal)

    async def record_progress_in(
        self,
        txn: StoreTransaction,
        user_id: str,
        badge_type: str,
        increment: int,
        goal: Optional[int] = None
    ) -> Badge:
        """Same as record_progress, inside a caller's transaction"""
        validate_positive_int(increment, "increment", "record_progress", user_id)
        if goal is not None:
            validate_positive_int(goal, "goal", "record_progress", user_id)

        key = record_key(user_id, badge_type)
        record = await txn.get(BADGES, key)
        if record is None:
            badge = self._new_badge(user_id, badge_type, goal=goal)
        else:
            badge = Badge.model_validate(record)

        old_level = badge.level
        level_ups = apply_progress(badge, increment, self.progress_mode)
        reward = self.reward_for(badge_type) * level_ups
        badge.points_rewarded += reward
        badge.updated_at = now_utc()

        await txn.put(BADGES, key, badge.model_dump(mode="json"))
        if reward:
            await self.ledger.credit(txn, user_id, reward)

        if level_ups:
            logger.info(
                f"Badge {badge_type} for user {user_id} leveled up "
                f"{old_level.value} → {badge.level.value} (+{reward} points)"
            )
        else:
            logger.debug(
                f"Badge {badge_type} progress for user {user_id}: {badge.progress}/{badge.goal}"
            )
        return badge

    async def award_new_badge(
        self,
        user_id: str,
        badge_type: str,
        level: Union[BadgeLevel, str] = BadgeLevel.BRONZE,
        goal: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        description: str = "",
        event: str = ""
    ) -> BadgeAwardResult:
        """
        Award a badge, or upgrade it one level if the user already holds it

        A new badge or an upgrade credits the badge-type reward. A Gold badge
        is left as is.

        Raises:
            InvalidArgumentError: level is not a badge level, or goal is not a
                positive integer
        """
        level = coerce_badge_level(level)
        if goal is not None:
            validate_positive_int(goal, "goal", "award_new_badge", user_id)

        key = record_key(user_id, badge_type)
        async with self.store.transaction() as txn:
            record = await txn.get(BADGES, key)

            if record is None:
                badge = self._new_badge(
                    user_id,
                    badge_type,
                    level=level,
                    goal=goal,
                    expires_at=ensure_utc(expires_at),
                    description=description,
                    event=event,
                )
                outcome = BadgeAwardOutcome.CREATED
                message = f"Badge awarded at {badge.level.value} level"
            else:
                badge = Badge.model_validate(record)
                if badge.level == BadgeLevel.GOLD:
                    return BadgeAwardResult(
                        badge=badge,
                        outcome=BadgeAwardOutcome.ALREADY_MAX_LEVEL,
                        points_awarded=0,
                        message="already at max level",
                    )
                badge.level = next_badge_level(badge.level)
                outcome = BadgeAwardOutcome.UPGRADED
                message = f"Badge upgraded to {badge.level.value}"

            reward = self.reward_for(badge_type)
            badge.points_rewarded += reward
            badge.updated_at = now_utc()
            await txn.put(BADGES, key, badge.model_dump(mode="json"))
            if reward:
                await self.ledger.credit(txn, user_id, reward)

        logger.info(
            f"Badge {badge_type} {outcome.value} for user {user_id} "
            f"at {badge.level.value} level (+{reward} points)"
        )
        return BadgeAwardResult(badge=badge, outcome=outcome, points_awarded=reward, message=message)

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete badges whose expiry has passed

        Safe to run repeatedly; returns 0 when nothing is expired.
        """
        now = ensure_utc(now) or now_utc()

        def expired(record: dict) -> bool:
            return Badge.model_validate(record).is_expired(now)

        removed = await self.store.delete_where(BADGES, expired)
        logger.info(f"Expired badge sweep at {now.isoformat()} removed {removed} badge(s)")
        return removed

    async def get_badge(self, user_id: str, badge_type: str) -> Badge:
        """
        Raises:
            RecordNotFoundError: the user has no badge of this type
        """
        record = await self.store.get(BADGES, record_key(user_id, badge_type))
        if record is None:
            raise RecordNotFoundError(
                message=f"No {badge_type} badge for user {user_id}",
                record_type="Badge",
                record_id=badge_type,
                user_id=user_id,
                operation="get_badge"
            )
        return Badge.model_validate(record)

    async def get_user_badges(
        self,
        user_id: str,
        include_expired: bool = False,
        now: Optional[datetime] = None
    ) -> List[Badge]:
        """User's badges, showcased first, then most recently awarded"""
        now = ensure_utc(now) or now_utc()
        badges = [
            Badge.model_validate(r)
            for r in await self.store.find(BADGES, lambda r: r.get("user_id") == user_id)
        ]
        if not include_expired:
            badges = [b for b in badges if not b.is_expired(now)]

        badges.sort(key=lambda b: b.date_awarded, reverse=True)
        badges.sort(key=lambda b: not b.is_showcased)
        return badges

    async def set_showcased(self, user_id: str, badge_type: str, showcased: bool = True) -> Badge:
        """
        Raises:
            RecordNotFoundError: the user has no badge of this type
        """
        key = record_key(user_id, badge_type)
        async with self.store.transaction() as txn:
            record = await txn.get(BADGES, key)
            if record is None:
                raise RecordNotFoundError(
                    message=f"No {badge_type} badge for user {user_id}",
                    record_type="Badge",
                    record_id=badge_type,
                    user_id=user_id,
                    operation="set_showcased"
                )
            badge = Badge.model_validate(record)
            badge.is_showcased = showcased
            badge.updated_at = now_utc()
            await txn.put(BADGES, key, badge.model_dump(mode="json"))
        return badge
