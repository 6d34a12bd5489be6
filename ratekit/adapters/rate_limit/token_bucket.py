"""In-memory token bucket rate limiters.

TokenBucketRateLimiter is a single bucket: a pool of up to ``capacity``
tokens refilled continuously at ``refill_rate`` tokens per second, from which
each request takes what it asks for. KeyedTokenBucketRateLimiter keeps one
such bucket per key so it can sit behind the AbstractRateLimiter interface.
"""

from __future__ import annotations

import math
import threading

from ratekit.adapters.rate_limit.base import (
    AbstractRateLimiter,
    Clock,
    RateLimitResult,
    wall_clock_ms,
)
from ratekit.core.errors import ConfigurationAppError


def _require_positive(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
        raise ConfigurationAppError(
            code=f"invalid_{name}",
            message=f"{name} must be a positive number",
            details={"field": name, "actual_value": str(value)},
        )
    if math.isinf(value):
        raise ConfigurationAppError(
            code=f"invalid_{name}",
            message=f"{name} must be finite",
            details={"field": name, "actual_value": str(value)},
        )


class TokenBucketRateLimiter:
    """A single refillable token bucket.

    The bucket starts full. Every call first refills it by the time elapsed
    since the previous call (clamped to capacity) and moves the refill mark to
    now, whether or not the request is then granted. A request is granted when
    the bucket holds at least the requested amount, comparison inclusive.
    """

    def __init__(
        self,
        *,
        capacity: float,
        refill_rate: float,
        clock: Clock = wall_clock_ms,
    ) -> None:
        """Initialize a full bucket.

        Args:
            capacity: Maximum number of tokens the bucket can hold.
            refill_rate: Tokens added per second.
            clock: Time source returning the current time in milliseconds.

        Raises:
            ConfigurationAppError: If capacity or refill_rate are not positive.
        """
        _require_positive("capacity", capacity)
        _require_positive("refill_rate", refill_rate)

        self._capacity = float(capacity)
        self._refill_rate = float(refill_rate)
        self._clock = clock
        self._lock = threading.RLock()
        self._tokens = self._capacity
        self._last_refill_ms = clock()

    @property
    def capacity(self) -> float:
        return self._capacity

    @property
    def refill_rate(self) -> float:
        return self._refill_rate

    @property
    def available_tokens(self) -> float:
        """Tokens left after the last call, without applying a new refill."""
        with self._lock:
            return self._tokens

    def _refill_locked(self) -> None:
        now = self._clock()
        elapsed_seconds = max(0.0, (now - self._last_refill_ms) / 1000.0)
        self._last_refill_ms = now
        self._tokens = min(self._capacity, self._tokens + elapsed_seconds * self._refill_rate)

    def take(self, tokens_requested: float = 1) -> RateLimitResult:
        """Refill, then take tokens_requested from the bucket if available.

        Args:
            tokens_requested: Amount of tokens this request costs.

        Returns:
            RateLimitResult with the decision and whole tokens remaining.

        Raises:
            ConfigurationAppError: If tokens_requested is not positive.
        """
        _require_positive("tokens_requested", tokens_requested)

        with self._lock:
            self._refill_locked()

            if self._tokens >= tokens_requested:
                self._tokens -= tokens_requested
                return RateLimitResult(
                    allowed=True,
                    limit=self._capacity,
                    remaining=int(math.floor(self._tokens)),
                    retry_after_seconds=None,
                )

            retry_after: float | None = None
            if tokens_requested <= self._capacity:
                retry_after = (tokens_requested - self._tokens) / self._refill_rate
            return RateLimitResult(
                allowed=False,
                limit=self._capacity,
                remaining=int(math.floor(self._tokens)),
                retry_after_seconds=retry_after,
            )

    def is_allowed(self, tokens_requested: float = 1) -> bool:
        """Return True and deduct the tokens if the bucket holds enough."""
        return self.take(tokens_requested).allowed

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TokenBucketRateLimiter(capacity={self._capacity}, "
            f"refill_rate={self._refill_rate}, tokens={self._tokens:.3f})"
        )


class KeyedTokenBucketRateLimiter(AbstractRateLimiter):
    """One independent token bucket per key.

    Buckets are created full on the first request for a key and are never
    evicted.
    """

    def __init__(
        self,
        *,
        capacity: float,
        refill_rate: float,
        clock: Clock = wall_clock_ms,
    ) -> None:
        _require_positive("capacity", capacity)
        _require_positive("refill_rate", refill_rate)

        self._capacity = capacity
        self._refill_rate = refill_rate
        self._clock = clock
        self._lock = threading.RLock()
        self._buckets: dict[str, TokenBucketRateLimiter] = {}

    @property
    def capacity(self) -> float:
        return float(self._capacity)

    @property
    def refill_rate(self) -> float:
        return float(self._refill_rate)

    def tracked_keys(self) -> int:
        """Return how many buckets have been created so far."""
        with self._lock:
            return len(self._buckets)

    def bucket_for(self, key: str) -> TokenBucketRateLimiter:
        """Return the bucket for key, creating a full one if missing."""
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucketRateLimiter(
                    capacity=self._capacity,
                    refill_rate=self._refill_rate,
                    clock=self._clock,
                )
                self._buckets[key] = bucket
            return bucket

    def consume(self, key: str, *, cost: int | float = 1) -> RateLimitResult:
        """Take cost tokens from the bucket belonging to key."""
        return self.bucket_for(key).take(cost)
