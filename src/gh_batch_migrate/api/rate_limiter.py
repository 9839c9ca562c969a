"""Request throttling and polling backoff for migration API calls."""

import asyncio
import time
from typing import Optional


class RateLimiter:
    """Token bucket rate limiter for API requests."""

    def __init__(self, requests_per_second: float = 10.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
        """
        if requests_per_second <= 0:
            raise ValueError('requests_per_second must be positive')

        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self.last_update = time.monotonic()
        self._lock: Optional[asyncio.Lock] = None

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(
            self.requests_per_second,
            self.tokens + elapsed * self.requests_per_second,
        )
        self.last_update = now

    async def acquire(self) -> None:
        """Acquire a token for making a request.

        Blocks until a token is available.
        """
        # Created lazily so the limiter binds to the running loop
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            self._refill()

            if self.tokens >= 1:
                self.tokens -= 1
                return

            sleep_time = (1 - self.tokens) / self.requests_per_second
            await asyncio.sleep(sleep_time)
            self.tokens = 0
            self.last_update = time.monotonic()


class PollingBackoff:
    """Capped exponential backoff for status polling.

    A ``factor`` of 1.0 gives a fixed interval.
    """

    def __init__(
        self,
        interval: float = 10.0,
        max_interval: float = 60.0,
        factor: float = 1.0,
    ):
        """Initialize backoff.

        Args:
            interval: First delay in seconds
            max_interval: Upper bound for any delay
            factor: Multiplier applied after each delay
        """
        if interval < 0 or max_interval < 0:
            raise ValueError('Polling intervals must not be negative')
        if factor < 1.0:
            raise ValueError('Backoff factor must be at least 1.0')

        self.interval = interval
        self.max_interval = max(interval, max_interval)
        self.factor = factor
        self._current = interval

    def next_delay(self) -> float:
        """Return the next delay and advance the curve."""
        delay = min(self._current, self.max_interval)
        self._current = min(self._current * self.factor, self.max_interval)
        return delay
