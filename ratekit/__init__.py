"""In-process rate limiters (fixed window, token bucket) and a FastAPI service around them."""

from ratekit.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from ratekit.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from ratekit.adapters.rate_limit.token_bucket import (
    KeyedTokenBucketRateLimiter,
    TokenBucketRateLimiter,
)

__all__ = [
    "AbstractRateLimiter",
    "FixedWindowRateLimiter",
    "KeyedTokenBucketRateLimiter",
    "RateLimitResult",
    "TokenBucketRateLimiter",
]
