"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Identifiers are never evicted, so memory grows with the number of distinct
  identifiers seen.
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


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting request timestamps per identifier.

    A request for an identifier is allowed while fewer than ``max_requests``
    of its recorded timestamps fall inside the trailing window
    ``(now - time_window_ms, now]``. A timestamp exactly ``time_window_ms``
    old no longer counts. Rejected requests are never recorded.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        time_window_ms: int,
        clock: Clock = wall_clock_ms,
    ) -> None:
        """Initialize the fixed-window limiter.

        Args:
            max_requests: Maximum number of requests per window and identifier.
            time_window_ms: Size of the trailing window in milliseconds.
            clock: Time source returning the current time in milliseconds.

        Raises:
            ConfigurationAppError: If max_requests or time_window_ms are invalid.
        """
        if isinstance(max_requests, bool) or not isinstance(max_requests, int) or max_requests < 1:
            raise ConfigurationAppError(
                code="invalid_max_requests",
                message="max_requests must be an integer >= 1",
                details={"field": "max_requests", "actual_value": max_requests},
            )
        if isinstance(time_window_ms, bool) or not isinstance(time_window_ms, int) or time_window_ms < 1:
            raise ConfigurationAppError(
                code="invalid_time_window",
                message="time_window_ms must be an integer >= 1",
                details={"field": "time_window_ms", "actual_value": time_window_ms},
            )

        self._max_requests = max_requests
        self._time_window_ms = time_window_ms
        self._clock = clock
        self._lock = threading.RLock()
        self._timestamps_by_key: dict[str, list[float]] = {}

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def time_window_ms(self) -> int:
        return self._time_window_ms

    def tracked_keys(self) -> int:
        """Return how many identifiers currently have a recorded history."""
        with self._lock:
            return len(self._timestamps_by_key)

    def _recent_timestamps(self, key: str, now: float) -> list[float]:
        """Return the timestamps of key that are still inside the window."""
        timestamps = self._timestamps_by_key.get(key, [])
        return [ts for ts in timestamps if now - ts < self._time_window_ms]

    def _retry_after_seconds(self, recent: list[float], now: float, cost: int) -> float | None:
        # Timestamps are appended in clock order, so they expire front to back.
        must_expire = len(recent) + cost - self._max_requests
        if must_expire > len(recent):
            return None
        return max(0.0, (recent[must_expire - 1] + self._time_window_ms - now) / 1000.0)

    def consume(self, key: str, *, cost: int | float = 1) -> RateLimitResult:
        """Record ``cost`` requests for key if the window has room for them.

        Args:
            key: Identifier whose history is checked (any string).
            cost: Number of requests to record (default 1).

        Returns:
            RateLimitResult with the decision and remaining budget.

        Raises:
            ConfigurationAppError: If cost is not a positive integer.
        """
        if (
            isinstance(cost, bool)
            or not isinstance(cost, (int, float))
            or not math.isfinite(cost)
            or cost < 1
            or cost != int(cost)
        ):
            raise ConfigurationAppError(
                code="invalid_cost",
                message="cost must be a positive integer for fixed-window limiting",
                details={"field": "cost", "actual_value": str(cost)},
            )
        cost = int(cost)

        with self._lock:
            now = self._clock()
            recent = self._recent_timestamps(key, now)

            if len(recent) + cost > self._max_requests:
                # Persist the prune; the rejected request itself is not recorded.
                self._timestamps_by_key[key] = recent
                return RateLimitResult(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=max(0, self._max_requests - len(recent)),
                    retry_after_seconds=self._retry_after_seconds(recent, now, cost),
                )

            recent.extend([now] * cost)
            self._timestamps_by_key[key] = recent
            return RateLimitResult(
                allowed=True,
                limit=self._max_requests,
                remaining=self._max_requests - len(recent),
                retry_after_seconds=None,
            )

    def is_allowed(self, identifier: str) -> bool:
        """Return True and record the request if identifier is under its limit."""
        return self.consume(identifier).allowed

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"FixedWindowRateLimiter(max_requests={self._max_requests}, "
            f"time_window_ms={self._time_window_ms})"
        )

