"""
Key-value store interface used for rate-limit records.

Every backend implements :class:`KVStore` so the gate and the cleanup
paths are decoupled from the storage technology.  Values are opaque
strings (JSON written by :mod:`formgate.store.records`).

Backends may be eventually consistent: a key written at one edge location
is not guaranteed to be visible immediately from another.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

DEFAULT_PAGE_SIZE = 1000


@dataclass
class KeyPage:
    """One page of a paginated key listing."""

    keys: list[str] = field(default_factory=list)
    cursor: str | None = None  # None → last page


class KVStore(Protocol):
    """Protocol that every storage backend must satisfy."""

    name: str

    async def get(self, key: str) -> str | None:
        """Return the live value for *key*, or None if absent/expired."""
        ...

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Upsert *value* under *key*, (re)starting its TTL countdown."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key*; deleting an absent key is not an error."""
        ...

    async def list_keys(
        self, cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> KeyPage:
        """Return one page of live keys in a stable order."""
        ...

    async def open(self) -> None:
        ...

    async def close(self) -> None:
        ...


class MemoryKVStore:
    """
    In-process store with per-key expiry.

    Used for development and tests.  *clock* returns epoch seconds and can
    be swapped for a fake to exercise TTL expiry deterministically.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(
        self, cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> KeyPage:
        live = sorted(k for k in list(self._data) if self._live(k) is not None)
        if cursor is not None:
            live = [k for k in live if k > cursor]
        page = live[:limit]
        next_cursor = page[-1] if len(live) > limit else None
        return KeyPage(keys=page, cursor=next_cursor)

    def __len__(self) -> int:
        return sum(1 for k in list(self._data) if self._live(k) is not None)
