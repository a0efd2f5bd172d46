"""Sliding-window rate limiter shared by an adapter's outbound calls."""

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` acquisitions within ``window_seconds``.

    ``try_acquire`` never waits: callers that find the window full fail fast
    with a rate-limit error instead of queueing behind other requests.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        name: str = "adapter",
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock or time.monotonic
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    async def try_acquire(self) -> bool:
        """Record a request if the window has room.

        Returns:
            True if the request may proceed, False if the limit is reached
        """
        async with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self.max_requests:
                logger.debug(
                    f"[{self.name}] rate limit reached "
                    f"({self.max_requests}/{self.window_seconds:.0f}s)"
                )
                return False
            self._timestamps.append(now)
            return True

    async def remaining(self) -> int:
        async with self._lock:
            self._prune(self._clock())
            return self.max_requests - len(self._timestamps)

    def seconds_until_available(self) -> float:
        """Time until the oldest request leaves the window (0 if free now)."""
        now = self._clock()
        self._prune(now)
        if len(self._timestamps) < self.max_requests:
            return 0.0
        return max(0.0, self._timestamps[0] + self.window_seconds - now)
