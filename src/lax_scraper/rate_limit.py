"""Token bucket rate limiter pacing requests to a single upstream source."""

import asyncio
import time
from typing import Optional

from .lax_logging import get_logger

logger = get_logger(__name__)


class TokenBucket:
    """Token bucket rate limiter shared by every client of one source."""

    def __init__(self, rate: float, capacity: Optional[int] = None, name: str = "default") -> None:
        """Initialize token bucket.

        Args:
            rate: Tokens per second refill rate
            capacity: Maximum token capacity (defaults to rate, at least 1)
            name: Source name used in log context
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity or max(1, int(rate))
        self.name = name
        self.tokens = float(self.capacity)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self, tokens: int = 1) -> float:
        """Acquire tokens from the bucket, blocking if necessary.

        Returns:
            Seconds spent waiting
        """
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update
            self.tokens = min(float(self.capacity), self.tokens + elapsed * self.rate)
            self.last_update = now

            if self.tokens < tokens:
                wait_time = (tokens - self.tokens) / self.rate
                logger.debug("Rate limit reached, waiting", source=self.name, wait_time=wait_time)
                await asyncio.sleep(wait_time)
                self.tokens = 0.0
                self.last_update = time.monotonic()
                return wait_time

            self.tokens -= tokens
            return 0.0
