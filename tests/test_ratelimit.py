"""Tests for the sliding-window rate limiter."""

import pytest

from uniquote.routing.ratelimit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter."""

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        """Requests within the window limit are admitted."""
        limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())

        assert await limiter.try_acquire()
        assert await limiter.try_acquire()
        assert await limiter.try_acquire()
        assert not await limiter.try_acquire()

    @pytest.mark.asyncio
    async def test_window_slides(self):
        """Old requests leave the window and free capacity."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)

        assert await limiter.try_acquire()
        clock.now += 30
        assert await limiter.try_acquire()
        assert not await limiter.try_acquire()

        clock.now += 31  # first request is now older than the window
        assert await limiter.try_acquire()
        assert not await limiter.try_acquire()

    @pytest.mark.asyncio
    async def test_remaining_and_wait_time(self):
        """remaining() and seconds_until_available() reflect the window."""
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=10, clock=clock)

        assert await limiter.remaining() == 1
        assert limiter.seconds_until_available() == 0.0

        await limiter.try_acquire()
        clock.now += 4

        assert await limiter.remaining() == 0
        assert limiter.seconds_until_available() == pytest.approx(6.0)
