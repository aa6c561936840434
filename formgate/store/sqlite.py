"""
SQLite key-value backend using aiosqlite.

Suitable for single-node deployments.  The table is created automatically
on first connect; expiry is enforced on read via the ``expires_at``
column, and expired rows are pruned whenever keys are listed.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

import aiosqlite

from formgate.store.kv import DEFAULT_PAGE_SIZE, KeyPage

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL       -- epoch seconds
);

CREATE INDEX IF NOT EXISTS idx_kv_expires ON kv(expires_at);
"""


class SqliteKVStore:
    name = "sqlite"

    def __init__(self, path: str, clock: Callable[[], float] = time.time) -> None:
        self._path = path
        self._clock = clock
        self._db: aiosqlite.Connection | None = None

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def open(self) -> None:
        """Open the database and create the table if it doesn't exist."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self._path)
        self._db.row_factory = aiosqlite.Row
        if self._path != ":memory:":
            await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.info("KV database initialized at %s", self._path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("KV database connection closed")

    def _conn(self) -> aiosqlite.Connection:
        assert self._db is not None, "KV store not opened, call open() first"
        return self._db

    # ── KVStore protocol ───────────────────────────────────────────────

    async def get(self, key: str) -> str | None:
        async with self._conn().execute(
            "SELECT value FROM kv WHERE key = ? AND expires_at > ?",
            (key, self._clock()),
        ) as cur:
            row = await cur.fetchone()
        return row["value"] if row else None

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        db = self._conn()
        await db.execute(
            """
            INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                expires_at = excluded.expires_at
            """,
            (key, value, self._clock() + ttl_seconds),
        )
        await db.commit()

    async def delete(self, key: str) -> None:
        db = self._conn()
        await db.execute("DELETE FROM kv WHERE key = ?", (key,))
        await db.commit()

    async def list_keys(
        self, cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> KeyPage:
        db = self._conn()
        now = self._clock()
        await db.execute("DELETE FROM kv WHERE expires_at <= ?", (now,))
        await db.commit()

        sql = "SELECT key FROM kv WHERE expires_at > ?"
        params: list = [now]
        if cursor is not None:
            sql += " AND key > ?"
            params.append(cursor)
        # Fetch one extra row to know whether another page exists
        sql += " ORDER BY key LIMIT ?"
        params.append(limit + 1)

        async with db.execute(sql, params) as cur:
            rows = await cur.fetchall()

        keys = [row["key"] for row in rows[:limit]]
        next_cursor = keys[-1] if len(rows) > limit else None
        return KeyPage(keys=keys, cursor=next_cursor)
