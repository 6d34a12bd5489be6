"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete strategies) so a
limiter can be swapped through configuration without touching the routes.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

# Time source returning the current time in milliseconds.
Clock = Callable[[], float]


def wall_clock_ms() -> float:
    """Return UNIX time in milliseconds."""
    return time.time() * 1000.0


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window, or bucket capacity.
        remaining: Whole units still available after this call.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int | float
    remaining: int
    retry_after_seconds: float | None


class AbstractRateLimiter(ABC):
    """Interface for keyed rate limiters."""

    @abstractmethod
    def consume(self, key: str, *, cost: int | float = 1) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Unique identifier (e.g., client id, IP address).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    def is_allowed(self, key: str) -> bool:
        """Consume a single unit for key and return only the decision."""
        return self.consume(key).allowed
