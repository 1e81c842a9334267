# src/services/rate_pacer.py

"""Minimum-interval pacer for sequential calls to a rate-limited API."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger("shopmate.ranking")

SleepFunc = Callable[[float], Awaitable[None]]


class RatePacer:
    """Hold each call back until ``interval`` has passed since the last success.

    Only successful calls start a new interval; after a failure the next
    call may proceed as soon as the previous interval allows.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._next_slot: float | None = None

    async def acquire(self) -> None:
        """Wait until the next call is allowed."""
        if self._next_slot is None:
            return
        delay = self._next_slot - self._clock()
        if delay > 0:
            logger.debug("Pacing next model call by %.2fs", delay)
            await self._sleep(delay)

    def mark_success(self) -> None:
        """Start a new pacing interval from now."""
        self._next_slot = self._clock() + self.interval
