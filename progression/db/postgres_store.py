"""PostgreSQL-backed record store"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

import psycopg
from psycopg.types.json import Jsonb

from progression.db.connection import Database, db
from progression.db.record_store import Predicate, Record, RecordStore, StoreTransaction
from progression.exceptions import wrap_store_exception

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS progression_records (
    collection TEXT NOT NULL,
    key TEXT NOT NULL,
    data JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (collection, key)
)
"""


class _PostgresTransaction(StoreTransaction):
    """Row access inside one database transaction"""

    def __init__(self, conn: psycopg.AsyncConnection):
        self._conn = conn

    async def _lock(self, cur: psycopg.AsyncCursor, collection: str, key: str) -> None:
        # Advisory lock so absent keys are serialized too; released at commit/rollback
        await cur.execute(
            "SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))",
            (f"{collection}\x1f{key}",)
        )

    async def get(self, collection: str, key: str) -> Optional[Record]:
        async with self._conn.cursor() as cur:
            await self._lock(cur, collection, key)
            await cur.execute(
                """
                SELECT data
                FROM progression_records
                WHERE collection = %s AND key = %s
                """,
                (collection, key)
            )
            row = await cur.fetchone()
            return row["data"] if row else None

    async def put(self, collection: str, key: str, record: Record) -> None:
        async with self._conn.cursor() as cur:
            await self._lock(cur, collection, key)
            await cur.execute(
                """
                INSERT INTO progression_records (collection, key, data)
                VALUES (%s, %s, %s)
                ON CONFLICT (collection, key) DO UPDATE
                SET data = EXCLUDED.data,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (collection, key, Jsonb(record))
            )

    async def delete(self, collection: str, key: str) -> None:
        async with self._conn.cursor() as cur:
            await self._lock(cur, collection, key)
            await cur.execute(
                "DELETE FROM progression_records WHERE collection = %s AND key = %s",
                (collection, key)
            )


class PostgresRecordStore(RecordStore):
    """
    Record store persisting every collection in a single JSONB table.

    Failures from the driver surface as StoreUnavailableError; nothing is
    retried here.
    """

    def __init__(self, database: Database = db):
        self.database = database

    async def ensure_schema(self) -> None:
        """Create the records table if it doesn't exist"""
        try:
            async with self.database.connection() as conn:
                await conn.execute(SCHEMA)
                await conn.commit()
        except psycopg.Error as e:
            raise wrap_store_exception(e, operation="ensure_schema")
        logger.info("progression_records table ready")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        try:
            async with self.database.connection() as conn:
                async with conn.transaction():
                    yield _PostgresTransaction(conn)
        except psycopg.Error as e:
            raise wrap_store_exception(e, operation="transaction")

    async def get(self, collection: str, key: str) -> Optional[Record]:
        try:
            async with self.database.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT data
                        FROM progression_records
                        WHERE collection = %s AND key = %s
                        """,
                        (collection, key)
                    )
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_store_exception(e, operation="get", context={"collection": collection, "key": key})
        return row["data"] if row else None

    async def put(self, collection: str, key: str, record: Record) -> None:
        async with self.transaction() as txn:
            await txn.put(collection, key, record)

    async def _scan(self, collection: str) -> List[Tuple[str, Record]]:
        try:
            async with self.database.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT key, data FROM progression_records WHERE collection = %s",
                        (collection,)
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_store_exception(e, operation="scan", context={"collection": collection})
        return [(row["key"], row["data"]) for row in rows]

    async def find(self, collection: str, predicate: Optional[Predicate] = None) -> List[Record]:
        records = [data for _, data in await self._scan(collection)]
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    async def delete_where(self, collection: str, predicate: Predicate) -> int:
        """
        Delete matching records under the same per-key lock as transactions

        Candidates are re-read and re-checked after the key lock is taken, so
        a concurrent update either lands before the delete or sees the record
        gone.
        """
        candidates = [
            key for key, data in await self._scan(collection)
            if predicate(data)
        ]
        removed = 0
        try:
            async with self.database.connection() as conn:
                async with conn.transaction():
                    txn = _PostgresTransaction(conn)
                    # Sorted so concurrent sweeps take key locks in the same order
                    for key in sorted(candidates):
                        current = await txn.get(collection, key)
                        if current is not None and predicate(current):
                            await txn.delete(collection, key)
                            removed += 1
        except psycopg.Error as e:
            raise wrap_store_exception(e, operation="delete_where", context={"collection": collection})

        if removed:
            logger.info(f"Deleted {removed} record(s) from {collection}")
        return removed
