"""
Shared rate limiter for outbound ledger calls.

Every monitor funnels its probe calls through the same instance so the
aggregate call rate stays bounded however many transactions are watched.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from txmonitor.monitor.config import RateLimitConfig

T = TypeVar("T")


class RateLimiter:
    """
    Bounds concurrency and spacing of scheduled calls.

    At most ``max_concurrent`` tasks run at once, and two task starts are
    at least ``min_interval_ms`` apart. Results and errors pass through
    untouched.
    """

    def __init__(self, config: Optional[RateLimitConfig] = None):
        self.config = config or RateLimitConfig()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent)
        self._spacing_lock = asyncio.Lock()
        self._last_start: Optional[float] = None
        self._in_flight = 0
        self.scheduled = 0

    async def _wait_for_slot(self):
        interval = self.config.min_interval_ms / 1000
        async with self._spacing_lock:
            loop = asyncio.get_running_loop()
            if self._last_start is not None and interval > 0:
                wait = self._last_start + interval - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_start = loop.time()

    async def schedule(
        self, task: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Run ``task(*args, **kwargs)`` within the budget.

        Returns:
            The task's result

        Raises:
            Exception: Whatever the task raised
        """
        async with self._semaphore:
            await self._wait_for_slot()
            self.scheduled += 1
            self._in_flight += 1
            try:
                return await task(*args, **kwargs)
            finally:
                self._in_flight -= 1

    def get_state(self) -> Dict[str, Any]:
        """Get current limiter state."""
        return {
            "max_concurrent": self.config.max_concurrent,
            "min_interval_ms": self.config.min_interval_ms,
            "in_flight": self._in_flight,
            "scheduled": self.scheduled,
        }
