"""Factory pattern for creating rate limiter instances."""

from __future__ import annotations

import logging

from ratekit.adapters.rate_limit.base import AbstractRateLimiter, Clock, wall_clock_ms
from ratekit.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from ratekit.adapters.rate_limit.token_bucket import KeyedTokenBucketRateLimiter
from ratekit.core.config import RateLimitSettings
from ratekit.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)


def create_rate_limiter(
    config: RateLimitSettings,
    *,
    clock: Clock = wall_clock_ms,
) -> AbstractRateLimiter:
    """Instantiate the limiter selected by config.strategy.

    Args:
        config: Rate limit settings (strategy plus its parameters).
        clock: Time source in milliseconds, injected into the limiter.

    Returns:
        AbstractRateLimiter: A fresh limiter with empty state.

    Raises:
        ConfigurationAppError: If the strategy is unknown or its parameters
            are invalid.
    """
    strategy = config.strategy.lower()

    if strategy == "fixed_window":
        limiter: AbstractRateLimiter = FixedWindowRateLimiter(
            max_requests=config.max_requests,
            time_window_ms=config.time_window_ms,
            clock=clock,
        )
        logger.info(
            "rate_limit.limiter_built",
            extra={
                "strategy": strategy,
                "max_requests": config.max_requests,
                "time_window_ms": config.time_window_ms,
            },
        )
        return limiter

    if strategy == "token_bucket":
        limiter = KeyedTokenBucketRateLimiter(
            capacity=config.capacity,
            refill_rate=config.refill_rate,
            clock=clock,
        )
        logger.info(
            "rate_limit.limiter_built",
            extra={
                "strategy": strategy,
                "capacity": config.capacity,
                "refill_rate": config.refill_rate,
            },
        )
        return limiter

    raise ConfigurationAppError(
        code="rate_limit_unknown_strategy",
        message=(
            f"Unknown rate limit strategy: '{strategy}'. "
            "Supported strategies: fixed_window, token_bucket"
        ),
        details={"strategy": strategy},
    )
