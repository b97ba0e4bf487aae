from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

from bizflow.mobile.domain.repositories import RateLimitStore
from bizflow.shared.logging import get_logger

logger = get_logger(__name__)


class RateLimitSweeper:
    """Periodically drops expired rate-limit windows, independent of traffic."""

    def __init__(
        self,
        store: RateLimitStore,
        *,
        interval: float = 60,
        grace_seconds: float = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.worker_name = "rate_limit_sweeper"
        self.store = store
        self.interval = interval
        self.grace_seconds = grace_seconds
        self._clock = clock
        self.shutdown_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def execute(self) -> int:
        removed = await self.store.sweep(now=self._clock(), grace_seconds=self.grace_seconds)
        if removed:
            logger.debug("rate_limit_entries_swept", removed=removed)
        return removed

    async def run(self) -> None:
        logger.info("worker_started", worker=self.worker_name, interval=self.interval)
        while not self.shutdown_event.is_set():
            try:
                await self.execute()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("worker_iteration_failed", worker=self.worker_name)
            try:
                # wait for next interval, but wake immediately on shutdown
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.info("worker_stopped", worker=self.worker_name)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self.shutdown_event = asyncio.Event()
            self._task = asyncio.create_task(self.run(), name=self.worker_name)
        return self._task

    async def stop(self) -> None:
        self.shutdown_event.set()
        if self._task is not None:
            await self._task
            self._task = None
