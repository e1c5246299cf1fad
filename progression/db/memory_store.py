"""In-process record store with per-key locking"""

import asyncio
import copy
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Set, Tuple

from progression.db.record_store import Predicate, Record, RecordStore, StoreTransaction

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


class _MemoryTransaction(StoreTransaction):
    """Buffers writes and holds key locks until the transaction ends"""

    def __init__(self, store: "InMemoryRecordStore"):
        self._store = store
        self._held: Set[_Key] = set()
        self.writes: Dict[_Key, Record] = {}

    async def _lock(self, collection: str, key: str) -> None:
        ident = (collection, key)
        if ident in self._held:
            return
        await self._store._acquire(ident)
        self._held.add(ident)

    async def get(self, collection: str, key: str) -> Optional[Record]:
        await self._lock(collection, key)
        # Yield like a real store round-trip would
        await asyncio.sleep(0)
        ident = (collection, key)
        if ident in self.writes:
            return copy.deepcopy(self.writes[ident])
        record = self._store._data[collection].get(key)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, collection: str, key: str, record: Record) -> None:
        await self._lock(collection, key)
        self.writes[(collection, key)] = copy.deepcopy(record)

    def release(self) -> None:
        for ident in self._held:
            self._store._release(ident)
        self._held.clear()


class InMemoryRecordStore(RecordStore):
    """
    Record store kept in process memory.

    Used by tests and single-process deployments. Records are deep-copied on
    the way in and out so callers never share mutable state with the store.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Record]] = defaultdict(dict)
        self._locks: Dict[_Key, asyncio.Lock] = {}
        # Holders plus waiters per key lock
        self._lock_users: Dict[_Key, int] = {}

    async def _acquire(self, ident: _Key) -> None:
        lock = self._locks.get(ident)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[ident] = lock
        self._lock_users[ident] = self._lock_users.get(ident, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget_user(ident)
            raise

    def _release(self, ident: _Key) -> None:
        self._locks[ident].release()
        self._forget_user(ident)

    def _forget_user(self, ident: _Key) -> None:
        self._lock_users[ident] -= 1
        collection, key = ident
        # Locks for absent records are dropped once nobody holds or awaits them
        if self._lock_users[ident] == 0 and key not in self._data[collection]:
            del self._lock_users[ident]
            del self._locks[ident]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        txn = _MemoryTransaction(self)
        try:
            yield txn
            await self._commit(txn.writes)
        finally:
            txn.release()

    async def _commit(self, writes: Dict[_Key, Record]) -> None:
        for (collection, key), record in writes.items():
            self._data[collection][key] = record
        if writes:
            logger.debug(f"Committed {len(writes)} record(s)")

    async def get(self, collection: str, key: str) -> Optional[Record]:
        await asyncio.sleep(0)
        record = self._data[collection].get(key)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, collection: str, key: str, record: Record) -> None:
        async with self.transaction() as txn:
            await txn.put(collection, key, record)

    async def find(self, collection: str, predicate: Optional[Predicate] = None) -> List[Record]:
        await asyncio.sleep(0)
        return [
            copy.deepcopy(record)
            for record in self._data[collection].values()
            if predicate is None or predicate(record)
        ]

    async def delete_where(self, collection: str, predicate: Predicate) -> int:
        removed = 0
        for key in list(self._data[collection].keys()):
            ident = (collection, key)
            await self._acquire(ident)
            try:
                record = self._data[collection].get(key)
                # Re-check under the lock; the record may have changed meanwhile
                if record is not None and predicate(record):
                    del self._data[collection][key]
                    removed += 1
            finally:
                self._release(ident)
        if removed:
            logger.debug(f"Deleted {removed} record(s) from {collection}")
        return removed
