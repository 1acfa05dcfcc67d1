"""FIFO admission control for outbound provider calls.

Each ``RateLimiter`` bounds both concurrency (in-flight operations) and
rate (dispatches per fixed window). Waiters are admitted strictly in the
order they called ``add``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Bounded-rate, bounded-concurrency FIFO queue.

    Args:
        name: Label used in log messages.
        interval: Window length in seconds.
        interval_cap: Maximum dispatches per window.
        concurrency: Maximum operations running at once.
    """

    def __init__(self, name: str, *, interval: float, interval_cap: int, concurrency: int) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if interval_cap <= 0:
            raise ValueError(f"interval_cap must be positive, got {interval_cap}")
        if concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {concurrency}")

        self.name = name
        self.interval = interval
        self.interval_cap = interval_cap
        self.concurrency = concurrency

        # asyncio.Lock wakes waiters in FIFO order
        self._admission = asyncio.Lock()
        self._slots = asyncio.Semaphore(concurrency)
        self._window_start = 0.0
        self._window_count = 0
        self._pending = 0
        self._active = 0

    @property
    def pending(self) -> int:
        """Operations queued but not yet dispatched."""
        return self._pending

    @property
    def active(self) -> int:
        """Operations currently running."""
        return self._active

    async def add(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn()`` once a concurrency slot and a rate slot are free."""
        self._pending += 1
        try:
            async with self._admission:
                await self._slots.acquire()
                try:
                    await self._take_interval_slot()
                except BaseException:
                    self._slots.release()
                    raise
        finally:
            self._pending -= 1

        self._active += 1
        try:
            return await fn()
        finally:
            self._active -= 1
            self._slots.release()

    async def _take_interval_slot(self) -> None:
        while True:
            now = time.monotonic()
            if now - self._window_start >= self.interval:
                self._window_start = now
                self._window_count = 0
            if self._window_count < self.interval_cap:
                self._window_count += 1
                return
            wait = self._window_start + self.interval - now
            logger.debug("Rate limiter '%s' window full, waiting %.2fs", self.name, wait)
            await asyncio.sleep(wait)


@dataclass
class RateLimiters:
    """The two process-wide limiters shared by every client."""

    search: RateLimiter
    llm: RateLimiter

    @classmethod
    def from_config(cls, config) -> RateLimiters:
        return cls(
            search=RateLimiter(
                "search",
                interval=config.search_interval,
                interval_cap=config.search_interval_cap,
                concurrency=config.search_concurrency,
            ),
            llm=RateLimiter(
                "llm",
                interval=config.llm_interval,
                interval_cap=config.llm_interval_cap,
                concurrency=config.llm_concurrency,
            ),
        )
