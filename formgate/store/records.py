"""
Rate-limit records on top of a raw :class:`~formgate.store.kv.KVStore`.

Responsibilities:

1.  Encode / decode :class:`RateLimitRecord` JSON.
2.  Answer the admission query ("is this key inside its window?").
3.  Write a record with TTL = window on every accepted submission.
4.  Active sweep – delete records older than the retention threshold
    (hygiene only; the store's own TTL is the correctness mechanism).
5.  Bulk purge – delete every key, returning the count.

Backend faults are logged and re-raised as :class:`StoreUnavailable` so
the request path can answer with a structured error.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from formgate.errors import StoreUnavailable
from formgate.identity import short_key
from formgate.models import RateLimitRecord
from formgate.store.kv import KVStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MalformedRecord(ValueError):
    """A stored value could not be decoded into a RateLimitRecord."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def decode_record(raw: str) -> RateLimitRecord:
    """Parse stored JSON; raises :class:`MalformedRecord` on any defect."""
    try:
        record = RateLimitRecord.model_validate_json(raw)
        record.recorded_at()
    except (ValidationError, ValueError) as exc:
        raise MalformedRecord(str(exc)) from exc
    return record


class RateLimitStore:
    def __init__(
        self,
        kv: KVStore,
        *,
        window_seconds: int,
        retention_seconds: int,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if retention_seconds <= window_seconds:
            raise ValueError("retention must be strictly longer than the rate-limit window")
        self._kv = kv
        self.window = timedelta(seconds=window_seconds)
        self.retention = timedelta(seconds=retention_seconds)
        self._clock = clock

    @property
    def backend(self) -> str:
        return self._kv.name

    async def _guard(self, op: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except Exception as exc:
            logger.exception("KV %s failed on %s backend", op, self._kv.name)
            raise StoreUnavailable() from exc

    # ── Request path ───────────────────────────────────────────────────

    async def get_record(self, key: str) -> RateLimitRecord | None:
        """Fetch and decode; raises :class:`MalformedRecord` for bad data."""
        raw = await self._guard("get", self._kv.get(key))
        if raw is None:
            return None
        return decode_record(raw)

    async def exists(self, key: str) -> bool:
        return await self._guard("get", self._kv.get(key)) is not None

    async def is_rate_limited(self, key: str) -> bool:
        """
        True when a record for *key* exists and is younger than the window.

        A malformed record fails open: it is logged and ignored, since an
        unreadable store value is not the caller's fault.
        """
        try:
            record = await self.get_record(key)
        except MalformedRecord as exc:
            logger.warning(
                "Ignoring malformed rate-limit record for %s: %s", short_key(key), exc
            )
            return False
        if record is None:
            return False
        age = self._clock() - record.recorded_at()
        return age < self.window

    async def record_submission(self, key: str, record: RateLimitRecord) -> None:
        """Write (or overwrite) the record for *key* with TTL = window."""
        ttl = int(self.window.total_seconds())
        await self._guard("put", self._kv.put(key, record.model_dump_json(), ttl))

    async def forget(self, key: str) -> None:
        await self._guard("delete", self._kv.delete(key))

    # ── Enumeration (admin / cleanup only) ─────────────────────────────

    async def iter_keys(self) -> AsyncIterator[str]:
        cursor: str | None = None
        while True:
            page = await self._guard("list", self._kv.list_keys(cursor=cursor))
            for key in page.keys:
                yield key
            if not page.cursor:
                break
            cursor = page.cursor

    async def all_keys(self) -> list[str]:
        return [key async for key in self.iter_keys()]

    async def sweep(self) -> int:
        """
        Delete every record older than the retention threshold.

        Keys that disappear mid-scan are skipped.  Malformed records are
        deleted too, since no age can be computed for them.
        """
        now = self._clock()
        deleted = 0
        for key in await self.all_keys():
            raw = await self._guard("get", self._kv.get(key))
            if raw is None:
                continue
            try:
                age = now - decode_record(raw).recorded_at()
            except MalformedRecord:
                logger.warning("Sweep removing malformed record %s", short_key(key))
                age = None
            if age is None or age > self.retention:
                await self.forget(key)
                deleted += 1
        logger.info("Sweep finished: %d record(s) deleted", deleted)
        return deleted

    async def purge_all(self) -> int:
        """Delete every key in the store and return how many were removed."""
        # Collect first so deletions never disturb cursor pagination
        keys = await self.all_keys()
        for key in keys:
            await self.forget(key)
        logger.info("Purged %d rate-limit record(s)", len(keys))
        return len(keys)
