"""
Dispatch rate gate for the Sponge crawler.

A single shared "time of last dispatch" spaces out the start of every
fetch in a session. Fetches themselves still run concurrently.
"""

import asyncio
import random
import time

from sponge.utils.logging import CrawlerLogger


class RateLimiter:
    """
    Session-wide dispatch gate.

    Features:
    - Fixed delay between dispatch starts
    - Optional uniform jitter in [0.5 * delay, 1.5 * delay]
    - Respects a robots.txt crawl-delay larger than the configured delay
    """

    def __init__(
        self,
        delay: float = 1.0,
        random_delay: bool = True,
        logger: CrawlerLogger | None = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            delay: Seconds between dispatches.
            random_delay: Jitter each delay by up to +/-50%.
            logger: Logger instance.
        """
        self.base_delay = max(0.0, delay)
        self.random_delay = random_delay
        self.logger = logger or CrawlerLogger("rate_limiter")

        self._crawl_delay: float | None = None
        self._last_dispatch: float | None = None
        self._lock = asyncio.Lock()
        self.total_waits = 0
        self.total_wait_seconds = 0.0

    @property
    def delay(self) -> float:
        """The effective delay before jitter."""
        if self._crawl_delay is not None:
            return max(self.base_delay, self._crawl_delay)
        return self.base_delay

    def set_crawl_delay(self, delay: float | None) -> None:
        """
        Apply the crawl-delay directive from robots.txt.

        Args:
            delay: The crawl-delay value in seconds.
        """
        self._crawl_delay = delay

    def _next_delay(self) -> float:
        delay = self.delay
        if self.random_delay and delay > 0:
            return random.uniform(0.5 * delay, 1.5 * delay)
        return delay

    async def acquire(self) -> float:
        """
        Wait until the next dispatch may start.

        The first dispatch never waits.

        Returns:
            The number of seconds waited.
        """
        async with self._lock:
            wait_time = 0.0
            if self._last_dispatch is not None:
                elapsed = time.monotonic() - self._last_dispatch
                wait_time = max(0.0, self._next_delay() - elapsed)

            if wait_time > 0:
                self.logger.rate_limit_wait(delay_seconds=wait_time)
                self.total_waits += 1
                self.total_wait_seconds += wait_time
                await asyncio.sleep(wait_time)

            self._last_dispatch = time.monotonic()
            return wait_time

    def reset(self) -> None:
        self._last_dispatch = None
