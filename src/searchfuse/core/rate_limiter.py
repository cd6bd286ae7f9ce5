"""Rate Limiter — Per-engine token buckets guarding outbound requests.

A denial means "skip this engine for this request": ``check_and_consume``
never waits and callers never retry. Backpressure shows up as fewer results,
not as a slower response.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class TokenBucket:
    """Token bucket with continuous refill.

    Attributes:
        capacity: Maximum number of stored tokens.
        refill_rate: Tokens added per second.
        tokens: Tokens currently available.
        last_refill: Clock reading of the last refill.
    """

    capacity: float
    refill_rate: float
    tokens: float
    last_refill: float

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def try_consume(self, now: float) -> bool:
        self.refill(now)
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


class RateLimiter:
    """Per-engine admission gate shared by every concurrent search.

    Each known engine owns one bucket; engines without a bucket are always
    allowed. All bucket mutation happens under a lock that is never held
    across an ``await``, so the limiter is safe for threads and tasks alike.

    Example:
        >>> limiter = RateLimiter({"Google": (5, 5.0)})
        >>> limiter.check_and_consume("Google")
        True

    Args:
        limits: Engine name to ``(capacity, refill_rate_per_second)``.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        limits: dict[str, tuple[int, float]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[str, TokenBucket] = {}
        for engine, (capacity, rate) in (limits or {}).items():
            self.configure(engine, capacity, rate)

    def configure(self, engine: str, capacity: int, refill_rate: float) -> None:
        """Create or replace the bucket for *engine*, starting full."""
        if capacity <= 0 or refill_rate <= 0:
            raise ValueError("capacity and refill_rate must be positive")
        with self._lock:
            self._buckets[engine] = TokenBucket(
                capacity=float(capacity),
                refill_rate=float(refill_rate),
                tokens=float(capacity),
                last_refill=self._clock(),
            )

    def check_and_consume(self, engine: str) -> bool:
        """Take one token for *engine* if available.

        Returns:
            True if the request may proceed, False if it must be skipped.
        """
        with self._lock:
            bucket = self._buckets.get(engine)
            if bucket is None:
                return True
            allowed = bucket.try_consume(self._clock())

        if not allowed:
            logger.info("Rate limit reached for engine '%s'", engine)
        return allowed

    def available_tokens(self, engine: str) -> float | None:
        """Current token count for *engine*, or None if it has no bucket."""
        with self._lock:
            bucket = self._buckets.get(engine)
            if bucket is None:
                return None
            bucket.refill(self._clock())
            return bucket.tokens

    @property
    def engines(self) -> list[str]:
        with self._lock:
            return list(self._buckets.keys())
