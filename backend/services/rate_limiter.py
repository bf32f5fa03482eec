"""Outbound call shaping: bounded concurrency, spacing, and retry with backoff.

Example:
    limiter = RateLimiter(max_concurrent=5, min_interval=0.2)
    policy = RetryPolicy(max_attempts=3, base_delay=1.0)

    async def attempt():
        async with limiter.slot():
            return await backend.complete(...)

    result = await policy.run(attempt, description="openai:gpt-4")

Backoff schedule (base_delay=1.0, max_attempts=3):
    Attempt 1: immediate
    Attempt 2: after 1s (+ jitter)
    Attempt 3: after 2s (+ jitter)
    (each delay capped at max_delay)
"""

import asyncio
import logging
import random
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from services.errors import is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Counting semaphore plus a minimum gap between consecutive dispatches."""

    def __init__(
        self,
        max_concurrent: int = 5,
        min_interval: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self.min_interval = max(0.0, min_interval)
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._spacing_lock = asyncio.Lock()
        self._last_dispatch: float | None = None
        self._clock = clock
        self._sleep = sleep
        self.active = 0

    async def _wait_for_spacing(self) -> None:
        async with self._spacing_lock:
            if self._last_dispatch is not None:
                wait = self._last_dispatch + self.min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_dispatch = self._clock()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one of the concurrent slots for the duration of a call."""
        async with self._semaphore:
            await self._wait_for_spacing()
            self.active += 1
            try:
                yield
            finally:
                self.active -= 1


class RetryPolicy:
    """Retry transient failures with capped exponential backoff.

    `max_attempts` counts the first try, so 3 means at most two retries.
    Failures the predicate rejects are raised immediately.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        is_retryable: Callable[[BaseException], bool] = is_transient,
        jitter: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.is_retryable = is_retryable
        self.jitter = jitter
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Delay before attempt `attempt + 1` (attempt is 1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += random.uniform(0, delay * 0.25)
        return delay

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "call") -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.warning(
                        "%s failed after %d attempts: %s", description, attempt, e
                    )
                    raise

                delay = self.delay_for(attempt)
                logger.info(
                    "%s attempt %d failed: %s. Retrying in %.1fs...",
                    description, attempt, e, delay,
                )
                await self._sleep(delay)

        raise AssertionError("unreachable")
