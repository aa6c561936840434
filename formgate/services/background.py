from __future__ import annotations

import asyncio
import contextlib
import logging

from formgate.store.records import RateLimitStore

logger = logging.getLogger(__name__)


class BackgroundWorker:
    """Base class for services that run a periodic background loop."""

    def __init__(self, *, interval: float, name: str) -> None:
        self._interval = interval
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        if self._interval <= 0:
            logger.info("%s disabled (interval %s)", self._name, self._interval)
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started (every %ds)", self._name, self._interval)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("%s stopped", self._name)

    async def _tick(self) -> None:
        raise NotImplementedError

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._tick()
            except Exception:
                logger.exception("%s tick failed — will retry", self._name)


class SweepWorker(BackgroundWorker):
    """Periodically removes records older than the retention threshold."""

    def __init__(self, store: RateLimitStore, *, interval: float) -> None:
        super().__init__(interval=interval, name="kv-sweep")
        self._store = store

    async def _tick(self) -> None:
        await self._store.sweep()


async def sweep_best_effort(store: RateLimitStore) -> None:
    """Fire-and-forget sweep scheduled after a response; never raises."""
    try:
        await store.sweep()
    except Exception:
        logger.exception("Background sweep failed")
