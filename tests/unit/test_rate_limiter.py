"""
Tests for the dispatch rate gate.
"""

import asyncio
import time

import pytest

from sponge.compliance.rate_limiter import RateLimiter


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_default_values(self) -> None:
        """Test that default configuration values are sensible."""
        limiter = RateLimiter()

        assert limiter.delay == 1.0
        assert limiter.random_delay is True

    def test_crawl_delay_only_raises_the_delay(self) -> None:
        """Test that the effective delay is the larger of the two."""
        limiter = RateLimiter(delay=1.0)

        limiter.set_crawl_delay(5.0)
        assert limiter.delay == 5.0

        limiter.set_crawl_delay(0.2)
        assert limiter.delay == 1.0

    def test_negative_delay_clamped(self) -> None:
        """Test that a negative delay behaves like zero."""
        assert RateLimiter(delay=-1).delay == 0.0

    @pytest.mark.asyncio
    async def test_first_dispatch_does_not_wait(self) -> None:
        """Test that the first acquire is immediate."""
        limiter = RateLimiter(delay=10.0, random_delay=False)

        assert await limiter.acquire() == 0.0

    @pytest.mark.asyncio
    async def test_acquire_respects_delay(self) -> None:
        """Test that consecutive dispatches are spaced out."""
        limiter = RateLimiter(delay=0.05, random_delay=False)

        start = time.monotonic()
        await limiter.acquire()
        await limiter.acquire()
        elapsed = time.monotonic() - start

        assert elapsed >= 0.04
        assert limiter.total_waits == 1

    @pytest.mark.asyncio
    async def test_concurrent_acquires_are_serialized(self) -> None:
        """Test that concurrent workers share one dispatch clock."""
        limiter = RateLimiter(delay=0.03, random_delay=False)

        start = time.monotonic()
        await asyncio.gather(*(limiter.acquire() for _ in range(4)))
        elapsed = time.monotonic() - start

        assert elapsed >= 0.08
        assert limiter.total_waits == 3

    @pytest.mark.asyncio
    async def test_jitter_stays_within_bounds(self) -> None:
        """Test that jittered waits stay within +/-50% of the delay."""
        limiter = RateLimiter(delay=0.02, random_delay=True)

        await limiter.acquire()
        for _ in range(5):
            waited = await limiter.acquire()
            assert waited <= 0.03 + 1e-6

    @pytest.mark.asyncio
    async def test_zero_delay_never_waits(self) -> None:
        """Test that a zero delay disables waiting."""
        limiter = RateLimiter(delay=0, random_delay=True)

        results = [await limiter.acquire() for _ in range(3)]

        assert results == [0.0, 0.0, 0.0]
        assert limiter.total_waits == 0

    @pytest.mark.asyncio
    async def test_reset(self) -> None:
        """Test that reset() makes the next dispatch immediate."""
        limiter = RateLimiter(delay=10.0, random_delay=False)
        await limiter.acquire()

        limiter.reset()

        assert await limiter.acquire() == 0.0
