"""Periodic driver for the router.

A single coroutine calls ``router.tick()`` on a fixed interval. ``stop()`` is
the kill switch: it only prevents new ticks, an in-flight tick (and any sends
it started) runs to completion.
"""

from __future__ import annotations

import asyncio
import logging

LOGGER = logging.getLogger(__name__)


class Ticker:
    def __init__(self, router, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._router = router
        self._interval = interval_seconds
        self._stopped = False
        self._wakeup: asyncio.Event | None = None
        self.ticks = 0

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        self._stopped = True
        if self._wakeup is not None:
            self._wakeup.set()

    async def run(self) -> None:
        self._wakeup = asyncio.Event()
        while not self._stopped:
            try:
                await self._router.tick()
            except Exception:
                LOGGER.exception("Scheduler tick failed")
            self.ticks += 1
            if self._stopped:
                break
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
        LOGGER.info("Scheduler stopped after %s ticks", self.ticks)
