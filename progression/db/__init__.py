"""Record store implementations"""
from progression.db.record_store import (
    BADGES,
    COLLECTIONS,
    POINTS_ACCOUNTS,
    STREAK_RECORDS,
    RecordStore,
    StoreTransaction,
    record_key,
)
from progression.db.memory_store import InMemoryRecordStore

__all__ = [
    "BADGES",
    "COLLECTIONS",
    "POINTS_ACCOUNTS",
    "STREAK_RECORDS",
    "RecordStore",
    "StoreTransaction",
    "record_key",
    "InMemoryRecordStore",
]
