"""Unit tests for the Badge State Machine (progression/gamification/badge_system.py)"""
from datetime import timedelta

import pytest

from progression.db.record_store import BADGES, record_key
from progression.exceptions import InvalidArgumentError, RecordNotFoundError
from progression.gamification.badge_system import (
    BADGE_POINT_REWARDS,
    BadgeStateMachine,
    ProgressMode,
    apply_progress,
    next_badge_level,
    points_for_badge,
    remaining_progress,
)
from progression.models.badge import Badge, BadgeAwardOutcome, BadgeLevel


# ============================================================================
# Pure Transition Tests
# ============================================================================

@pytest.mark.parametrize("level,expected", [
    (BadgeLevel.BRONZE, BadgeLevel.SILVER),
    (BadgeLevel.SILVER, BadgeLevel.GOLD),
    (BadgeLevel.GOLD, BadgeLevel.GOLD),
    ("Silver", BadgeLevel.GOLD),
])
def test_next_badge_level(level, expected):
    assert next_badge_level(level) == expected


def test_next_badge_level_unknown_level():
    with pytest.raises(InvalidArgumentError):
        next_badge_level("Platinum")


@pytest.mark.parametrize("badge_type,points", [
    ("goal_completed", 50),
    ("helper", 30),
    ("milestone_achiever", 100),
    ("consistency_master", 75),
    ("time_based", 40),
    ("event_badge", 20),
    ("secret_handshake", 0),
])
def test_points_for_badge(badge_type, points):
    assert points_for_badge(badge_type) == points


def test_apply_progress_carry_over_multiple_levels():
    """One large increment can pass several levels"""
    badge = Badge(user_id="u1", badge_type="helper", goal=3)

    level_ups = apply_progress(badge, 7)

    assert level_ups == 2
    assert badge.level == BadgeLevel.GOLD
    assert badge.progress == 1


def test_apply_progress_reset_mode_levels_once():
    badge = Badge(user_id="u1", badge_type="helper", goal=3)

    level_ups = apply_progress(badge, 7, ProgressMode.RESET)

    assert level_ups == 1
    assert badge.level == BadgeLevel.SILVER
    assert badge.progress == 0


def test_remaining_progress():
    assert remaining_progress(Badge(user_id="u1", badge_type="helper", goal=5, progress=2)) == 3
    assert remaining_progress(Badge(user_id="u1", badge_type="helper", goal=5, level=BadgeLevel.GOLD)) == 0


# ============================================================================
# Record Progress Tests
# ============================================================================

@pytest.mark.asyncio
async def test_record_progress_creates_badge_lazily(badges, ledger, test_user_id):
    """Progress on a missing badge creates it with goal 1 and levels it up"""
    badge = await badges.record_progress(test_user_id, "helper", 1)

    assert badge.goal == 1
    assert badge.level == BadgeLevel.SILVER
    assert badge.progress == 0
    assert (await ledger.balance(test_user_id)).points == 30


@pytest.mark.asyncio
async def test_level_up_with_carry_over(badges, ledger, test_user_id):
    """goal=5 and increments [2, 2, 2] → Silver once, progress 1, +50 points"""
    await badges.record_progress(test_user_id, "goal_completed", 2, goal=5)
    badge = await badges.record_progress(test_user_id, "goal_completed", 2)
    assert badge.level == BadgeLevel.BRONZE
    assert badge.progress == 4

    badge = await badges.record_progress(test_user_id, "goal_completed", 2)

    assert badge.level == BadgeLevel.SILVER
    assert badge.progress == 1
    assert badge.points_rewarded == 50
    assert (await ledger.balance(test_user_id)).points == 50


@pytest.mark.asyncio
async def test_goal_is_only_used_on_creation(badges, test_user_id):
    await badges.record_progress(test_user_id, "helper", 1, goal=4)
    badge = await badges.record_progress(test_user_id, "helper", 1, goal=100)

    assert badge.goal == 4


@pytest.mark.asyncio
async def test_gold_is_terminal(badges, ledger, test_user_id):
    """Progress on Gold never changes level or credits points"""
    await badges.record_progress(test_user_id, "milestone_achiever", 4, goal=2)
    points_at_gold = (await ledger.balance(test_user_id)).points
    assert points_at_gold == 200

    for _ in range(5):
        badge = await badges.record_progress(test_user_id, "milestone_achiever", 3)
        assert badge.level == BadgeLevel.GOLD
        assert badge.progress <= badge.goal

    assert (await ledger.balance(test_user_id)).points == points_at_gold


@pytest.mark.asyncio
async def test_unknown_badge_type_levels_without_points(badges, ledger, store, test_user_id):
    badge = await badges.record_progress(test_user_id, "night_owl", 1)

    assert badge.level == BadgeLevel.SILVER
    assert badge.points_rewarded == 0
    assert await ledger.peek(test_user_id) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("increment", [0, -1, 1.5, None])
async def test_record_progress_rejects_invalid_increment(badges, store, test_user_id, increment):
    with pytest.raises(InvalidArgumentError):
        await badges.record_progress(test_user_id, "helper", increment)

    assert await store.get(BADGES, record_key(test_user_id, "helper")) is None


@pytest.mark.asyncio
async def test_default_goals_per_badge_type(store, ledger, test_user_id):
    machine = BadgeStateMachine(store, ledger, default_goals={"consistency_master": 7})

    badge = await machine.record_progress(test_user_id, "consistency_master", 1)

    assert badge.goal == 7
    assert badge.progress == 1


@pytest.mark.asyncio
async def test_reset_mode_discards_overflow(store, ledger, test_user_id):
    machine = BadgeStateMachine(store, ledger, progress_mode=ProgressMode.RESET)

    badge = await machine.record_progress(test_user_id, "helper", 9, goal=5)

    assert badge.level == BadgeLevel.SILVER
    assert badge.progress == 0
    assert (await ledger.balance(test_user_id)).points == BADGE_POINT_REWARDS["helper"]


# ============================================================================
# Award Badge Tests
# ============================================================================

@pytest.mark.asyncio
async def test_award_new_badge_creates_and_credits(badges, ledger, test_user_id):
    result = await badges.award_new_badge(test_user_id, "time_based", description="Early bird")

    assert result.outcome == BadgeAwardOutcome.CREATED
    assert result.badge.level == BadgeLevel.BRONZE
    assert result.badge.description == "Early bird"
    assert result.points_awarded == 40
    assert (await ledger.balance(test_user_id)).points == 40


@pytest.mark.asyncio
async def test_award_existing_badge_upgrades(badges, test_user_id):
    await badges.award_new_badge(test_user_id, "helper")

    result = await badges.award_new_badge(test_user_id, "helper")

    assert result.outcome == BadgeAwardOutcome.UPGRADED
    assert result.badge.level == BadgeLevel.SILVER


@pytest.mark.asyncio
async def test_award_gold_badge_is_noop(badges, ledger, test_user_id):
    await badges.award_new_badge(test_user_id, "event_badge", level=BadgeLevel.GOLD)
    points_before = (await ledger.balance(test_user_id)).points

    result = await badges.award_new_badge(test_user_id, "event_badge")

    assert result.outcome == BadgeAwardOutcome.ALREADY_MAX_LEVEL
    assert result.message == "already at max level"
    assert result.points_awarded == 0
    assert (await ledger.balance(test_user_id)).points == points_before


@pytest.mark.asyncio
async def test_award_with_unknown_level_rejected(badges, test_user_id):
    with pytest.raises(InvalidArgumentError):
        await badges.award_new_badge(test_user_id, "helper", level="Diamond")


# ============================================================================
# Expiry Sweep Tests
# ============================================================================

@pytest.mark.asyncio
async def test_sweep_expired_removes_only_expired(badges, test_user_id, base_time):
    await badges.award_new_badge(test_user_id, "event_badge", expires_at=base_time - timedelta(days=1))
    await badges.award_new_badge(test_user_id, "helper", expires_at=base_time + timedelta(days=1))
    await badges.award_new_badge(test_user_id, "time_based")

    removed = await badges.sweep_expired(base_time)

    assert removed == 1
    remaining = await badges.get_user_badges(test_user_id, include_expired=True)
    assert {b.badge_type for b in remaining} == {"helper", "time_based"}


@pytest.mark.asyncio
async def test_sweep_expired_is_idempotent(badges, test_user_id, base_time):
    await badges.award_new_badge(test_user_id, "event_badge", expires_at=base_time - timedelta(hours=1))

    assert await badges.sweep_expired(base_time) == 1
    assert await badges.sweep_expired(base_time) == 0


@pytest.mark.asyncio
async def test_sweep_with_nothing_stored(badges, base_time):
    assert await badges.sweep_expired(base_time) == 0


# ============================================================================
# Lookup & Showcase Tests
# ============================================================================

@pytest.mark.asyncio
async def test_get_badge_not_found(badges, test_user_id):
    with pytest.raises(RecordNotFoundError):
        await badges.get_badge(test_user_id, "helper")


@pytest.mark.asyncio
async def test_get_user_badges_hides_expired(badges, test_user_id, base_time):
    await badges.award_new_badge(test_user_id, "event_badge", expires_at=base_time - timedelta(days=1))
    await badges.award_new_badge(test_user_id, "helper")

    visible = await badges.get_user_badges(test_user_id, now=base_time)

    assert [b.badge_type for b in visible] == ["helper"]


@pytest.mark.asyncio
async def test_showcased_badges_listed_first(badges, test_user_id):
    await badges.award_new_badge(test_user_id, "helper")
    await badges.award_new_badge(test_user_id, "time_based")

    badge = await badges.set_showcased(test_user_id, "helper")
    listed = await badges.get_user_badges(test_user_id)

    assert badge.is_showcased is True
    assert listed[0].badge_type == "helper"


@pytest.mark.asyncio
async def test_set_showcased_missing_badge(badges, test_user_id):
    with pytest.raises(RecordNotFoundError):
        await badges.set_showcased(test_user_id, "helper")
