"""
Points Ledger

Keeps each user's point balance and the level derived from it. Level is
never written directly: every change to points re-derives it from the
threshold table inside the same store transaction.
"""

from datetime import datetime
from typing import List, Optional
import logging

from progression.db.record_store import POINTS_ACCOUNTS, RecordStore, StoreTransaction
from progression.exceptions import InvalidArgumentError
from progression.gamification.thresholds import ThresholdTable, default_table
from progression.models.points import PointsAccount
from progression.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


def validate_positive_int(value: int, field: str, operation: str, user_id: Optional[str] = None) -> None:
    """Reject zero, negative, boolean and non-integer amounts"""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError(
            message=f"{field} must be a positive integer",
            field=field,
            value=value,
            user_id=user_id,
            operation=operation
        )


class PointsLedger:
    """Award, redeem and read point balances"""

    def __init__(self, store: RecordStore, table: ThresholdTable = default_table):
        self.store = store
        self.table = table

    def _apply(self, account: PointsAccount, delta: int, at: datetime) -> PointsAccount:
        account.points += delta
        account.level = self.table.level_for(account.points)
        account.last_activity_at = at
        account.updated_at = at
        return account

    async def _load(self, txn: StoreTransaction, user_id: str) -> PointsAccount:
        record = await txn.get(POINTS_ACCOUNTS, user_id)
        if record is None:
            return PointsAccount(user_id=user_id)
        return PointsAccount.model_validate(record)

    async def credit(self, txn: StoreTransaction, user_id: str, amount: int) -> PointsAccount:
        """
        Add points inside a caller's transaction

        Used when a reward must commit together with another record (badge
        level-ups). An amount of 0 leaves the account untouched.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidArgumentError(
                message="credit amount must be a non-negative integer",
                field="amount",
                value=amount,
                user_id=user_id,
                operation="credit"
            )

        account = await self._load(txn, user_id)
        if amount == 0:
            return account

        old_level = account.level
        account = self._apply(account, amount, now_utc())
        await txn.put(POINTS_ACCOUNTS, user_id, account.model_dump(mode="json"))

        if account.level > old_level:
            logger.info(f"User {user_id} leveled up from {old_level} to {account.level}!")
        return account

    async def award(self, user_id: str, amount: int) -> PointsAccount:
        """
        Award points to a user and re-derive their level

        Args:
            user_id: User identifier
            amount: Points to add, a positive integer

        Returns:
            The updated PointsAccount

        Raises:
            InvalidArgumentError: amount is not a positive integer
        """
        validate_positive_int(amount, "amount", "award", user_id)

        async with self.store.transaction() as txn:
            account = await self.credit(txn, user_id, amount)

        logger.info(
            f"Awarded {amount} points to user {user_id}. "
            f"Total: {account.points}, Level: {account.level}"
        )
        return account

    async def redeem(self, user_id: str, amount: int) -> PointsAccount:
        """
        Spend points, lowering the balance and possibly the level

        Raises:
            InvalidArgumentError: amount is not a positive integer, or the
                balance is lower than amount
        """
        validate_positive_int(amount, "amount", "redeem", user_id)

        async with self.store.transaction() as txn:
            account = await self._load(txn, user_id)
            if account.points < amount:
                raise InvalidArgumentError(
                    message=f"insufficient points: balance {account.points}, requested {amount}",
                    field="amount",
                    value=amount,
                    user_id=user_id,
                    operation="redeem"
                )
            account = self._apply(account, -amount, now_utc())
            await txn.put(POINTS_ACCOUNTS, user_id, account.model_dump(mode="json"))

        logger.info(f"User {user_id} redeemed {amount} points. Remaining: {account.points}")
        return account

    async def balance(self, user_id: str) -> PointsAccount:
        """Current account, created with zero points on first read"""
        record = await self.store.get(POINTS_ACCOUNTS, user_id)
        if record is not None:
            return PointsAccount.model_validate(record)

        def init(current: dict) -> dict:
            # Another caller may have created it since the read above
            if current:
                return current
            return PointsAccount(user_id=user_id).model_dump(mode="json")

        record = await self.store.atomic_update(POINTS_ACCOUNTS, user_id, init)
        logger.info(f"Created points account for user {user_id}")
        return PointsAccount.model_validate(record)

    async def peek(self, user_id: str) -> Optional[PointsAccount]:
        """Current account without creating one"""
        record = await self.store.get(POINTS_ACCOUNTS, user_id)
        return PointsAccount.model_validate(record) if record is not None else None

    async def leaderboard(self, limit: int = 10) -> List[PointsAccount]:
        """
        Accounts ordered by points (highest first), ties broken by user id

        Args:
            limit: Maximum number of accounts to return
        """
        validate_positive_int(limit, "limit", "leaderboard")
        accounts = [PointsAccount.model_validate(r) for r in await self.store.find(POINTS_ACCOUNTS)]
        accounts.sort(key=lambda a: (-a.points, a.user_id))
        return accounts[:limit]
