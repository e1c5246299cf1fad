"""
Record store abstraction

The engine never talks to a database directly. Every mutating operation is a
short read-modify-write against one of these collections, run inside a
store transaction so concurrent updates to the same key are linearized.
"""

import copy
import json
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Dict, List, Optional

POINTS_ACCOUNTS = "points_accounts"
BADGES = "badges"
STREAK_RECORDS = "streak_records"

COLLECTIONS = (POINTS_ACCOUNTS, BADGES, STREAK_RECORDS)

Record = Dict[str, Any]
UpdateFn = Callable[[Record], Record]
Predicate = Callable[[Record], bool]


def record_key(*parts: str) -> str:
    """Build an unambiguous key from composite key parts"""
    return json.dumps([str(p) for p in parts], separators=(",", ":"))


class StoreTransaction(ABC):
    """
    Reads and writes inside one atomic unit.

    `get` and `put` lock the key for the rest of the transaction. Writes are
    only visible to other callers once the transaction commits; if the body
    raises, nothing is written.
    """

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Record]:
        ...

    @abstractmethod
    async def put(self, collection: str, key: str, record: Record) -> None:
        ...


class RecordStore(ABC):
    """Keyed document storage used by the progression engine"""

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Record]:
        """Return the committed record, or None if absent"""

    @abstractmethod
    async def put(self, collection: str, key: str, record: Record) -> None:
        """Replace the record at key"""

    @abstractmethod
    async def delete_where(self, collection: str, predicate: Predicate) -> int:
        """Delete every record matching predicate, returning how many were removed"""

    @abstractmethod
    async def find(self, collection: str, predicate: Optional[Predicate] = None) -> List[Record]:
        """Return committed records matching predicate (all records if None)"""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open an atomic read-modify-write unit"""

    async def atomic_update(
        self,
        collection: str,
        key: str,
        update_fn: UpdateFn,
        default: Optional[Callable[[], Record]] = None
    ) -> Record:
        """
        Apply update_fn to the current record and persist the result atomically

        Args:
            collection: Collection name
            key: Record key
            update_fn: Receives a private copy of the current record (or the
                default when absent) and returns the record to store
            default: Factory for the zero-value record (empty dict if None)

        Returns:
            The stored record
        """
        async with self.transaction() as txn:
            current = await txn.get(collection, key)
            if current is None:
                current = default() if default else {}
            updated = update_fn(copy.deepcopy(current))
            await txn.put(collection, key, updated)
        return updated
