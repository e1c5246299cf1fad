"""Unit tests for the Points Ledger (progression/gamification/points_ledger.py)"""
import asyncio

import pytest

from progression.db.record_store import POINTS_ACCOUNTS
from progression.exceptions import InvalidArgumentError
from progression.gamification.points_ledger import PointsLedger
from progression.gamification.thresholds import ThresholdTable


# ============================================================================
# Award Tests
# ============================================================================

@pytest.mark.asyncio
async def test_award_creates_account_lazily(ledger, store, test_user_id):
    """First award creates the account"""
    assert await store.get(POINTS_ACCOUNTS, test_user_id) is None

    account = await ledger.award(test_user_id, 40)

    assert account.points == 40
    assert account.level == 1
    assert account.last_activity_at is not None
    assert (await store.get(POINTS_ACCOUNTS, test_user_id))["points"] == 40


@pytest.mark.asyncio
async def test_award_sums_amounts_and_tracks_level(ledger, threshold_table, test_user_id):
    """Final points equal the sum of awards; level always matches points"""
    amounts = [30, 70, 5, 250, 400, 1000]
    total = 0

    for amount in amounts:
        account = await ledger.award(test_user_id, amount)
        total += amount
        assert account.points == total
        assert account.level == threshold_table.level_for(total)

    assert account.points == sum(amounts)
    assert account.level == 5


@pytest.mark.asyncio
async def test_award_level_up_boundary(ledger, test_user_id):
    await ledger.award(test_user_id, 99)
    account = await ledger.award(test_user_id, 1)

    assert account.points == 100
    assert account.level == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -10, 2.5, "50", None, True])
async def test_award_rejects_invalid_amounts(ledger, store, test_user_id, amount):
    """Only positive integers can be awarded"""
    with pytest.raises(InvalidArgumentError) as exc_info:
        await ledger.award(test_user_id, amount)

    assert exc_info.value.field == "amount"
    assert await store.get(POINTS_ACCOUNTS, test_user_id) is None


@pytest.mark.asyncio
async def test_award_uses_custom_threshold_table(store, test_user_id):
    ledger = PointsLedger(store, ThresholdTable([0, 10, 20]))

    account = await ledger.award(test_user_id, 25)

    assert account.level == 3


# ============================================================================
# Concurrency Tests
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_awards_are_not_lost(ledger, test_user_id):
    """N concurrent awards of 1 on a fresh account give exactly N points"""
    n = 200

    await asyncio.gather(*(ledger.award(test_user_id, 1) for _ in range(n)))

    account = await ledger.balance(test_user_id)
    assert account.points == n
    assert account.level == 2


@pytest.mark.asyncio
async def test_concurrent_awards_for_different_users(ledger):
    await asyncio.gather(*(ledger.award(f"user-{i % 5}", 10) for i in range(50)))

    for i in range(5):
        assert (await ledger.balance(f"user-{i}")).points == 100


# ============================================================================
# Balance Tests
# ============================================================================

@pytest.mark.asyncio
async def test_balance_lazily_creates_zero_account(ledger, store, test_user_id):
    account = await ledger.balance(test_user_id)

    assert account.points == 0
    assert account.level == 1
    assert await store.get(POINTS_ACCOUNTS, test_user_id) is not None


@pytest.mark.asyncio
async def test_balance_returns_existing_account(ledger, test_user_id):
    await ledger.award(test_user_id, 350)

    account = await ledger.balance(test_user_id)

    assert account.points == 350
    assert account.level == 3


@pytest.mark.asyncio
async def test_peek_does_not_create_account(ledger, store, test_user_id):
    assert await ledger.peek(test_user_id) is None
    assert await store.get(POINTS_ACCOUNTS, test_user_id) is None


# ============================================================================
# Redeem Tests
# ============================================================================

@pytest.mark.asyncio
async def test_redeem_lowers_points_and_level(ledger, test_user_id):
    await ledger.award(test_user_id, 320)

    account = await ledger.redeem(test_user_id, 250)

    assert account.points == 70
    assert account.level == 1


@pytest.mark.asyncio
async def test_redeem_insufficient_points_leaves_balance(ledger, test_user_id):
    await ledger.award(test_user_id, 50)

    with pytest.raises(InvalidArgumentError):
        await ledger.redeem(test_user_id, 51)

    assert (await ledger.balance(test_user_id)).points == 50


@pytest.mark.asyncio
async def test_redeem_rejects_non_positive_amount(ledger, test_user_id):
    with pytest.raises(InvalidArgumentError):
        await ledger.redeem(test_user_id, 0)


# ============================================================================
# Leaderboard Tests
# ============================================================================

@pytest.mark.asyncio
async def test_leaderboard_sorted_by_points(ledger):
    await ledger.award("alice", 300)
    await ledger.award("bob", 500)
    await ledger.award("carol", 300)
    await ledger.award("dave", 10)

    board = await ledger.leaderboard(limit=3)

    assert [a.user_id for a in board] == ["bob", "alice", "carol"]


@pytest.mark.asyncio
async def test_leaderboard_rejects_bad_limit(ledger):
    with pytest.raises(InvalidArgumentError):
        await ledger.leaderboard(limit=0)
