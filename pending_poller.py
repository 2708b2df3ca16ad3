"""Interval refresh of the moderation queue (cancellable, last-request-wins)."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Callable, List, Tuple

import anyio

from hierarchy import PendingEntry, pending_queue
from navtree.nodes import Forest


logger = logging.getLogger("navtree.poller")

RequestStamp = Tuple[float, int]


class PendingQueuePoller:
    def __init__(
        self,
        fetch: Callable[[], Forest],
        on_update: Callable[[Forest, float], None] | None = None,
        interval: float = 5.0,
        locale: str = "en",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fetch = fetch
        self._on_update = on_update
        self._interval = interval
        self._locale = locale
        self._clock = clock
        self._seq = itertools.count()
        self._last_applied: RequestStamp = (float("-inf"), -1)
        self._latest: List[PendingEntry] = []
        self._task: asyncio.Task | None = None

    @property
    def latest(self) -> List[PendingEntry]:
        return list(self._latest)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def stamp(self) -> RequestStamp:
        return (self._clock(), next(self._seq))

    def apply(self, requested: RequestStamp, forest: Forest) -> bool:
        """Install a response unless a later request was already applied."""
        if requested <= self._last_applied:
            logger.info("pending_response_stale requested_at=%s last_applied=%s", requested[0], self._last_applied[0])
            return False
        self._last_applied = requested
        self._latest = pending_queue(forest, self._locale)
        if self._on_update is not None:
            self._on_update(forest, requested[0])
        return True

    async def poll_once(self) -> bool:
        requested = self.stamp()
        forest = await anyio.to_thread.run_sync(self._fetch)
        return self.apply(requested, forest)

    async def run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception as exc:
                logger.warning("pending_poll_failed error=%s", exc)
            await asyncio.sleep(self._interval)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
