"""Retry with exponential backoff for async callables.

A denied rate limit check or a flaky upstream call is usually worth retrying
after a short wait. RetryPolicy describes how long to wait, retry_async runs
a coroutine function under a policy, and with_retry wraps one as a decorator.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from ratekit.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt (0 means a single call).
        initial_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any single delay, in seconds.
        factor: Growth factor applied per attempt.
        jitter: Add up to 100% random extra delay (still capped by max_delay).
        retryable_exceptions: Exception types that trigger a retry; anything
            else propagates immediately.

    Example:
        >>> policy = RetryPolicy(initial_delay=0.5, jitter=False)
        >>> policy.calculate_delay(2)
        2.0
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    factor: float = 2.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationAppError(
                code="invalid_max_retries",
                message="max_retries must be >= 0",
                details={"field": "max_retries", "actual_value": self.max_retries},
            )
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ConfigurationAppError(
                code="invalid_retry_delay",
                message="initial_delay and max_delay must be >= 0",
                details={"field": "initial_delay", "actual_value": self.initial_delay},
            )
        if self.factor < 1:
            raise ConfigurationAppError(
                code="invalid_retry_factor",
                message="factor must be >= 1",
                details={"field": "factor", "actual_value": self.factor},
            )

    def calculate_delay(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Delay in seconds before retry number attempt (0-indexed).

        delay = min(initial_delay * factor ** attempt, max_delay), then with
        jitter min(delay + rng() * delay, max_delay).
        """
        delay = min(self.initial_delay * (self.factor**attempt), self.max_delay)
        if self.jitter:
            return min(delay + rng() * delay, self.max_delay)
        return delay

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retryable_exceptions)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Await fn until it succeeds or the policy gives up.

    Args:
        fn: Zero-argument coroutine function to call.
        policy: Retry policy; defaults to RetryPolicy().
        sleep: Awaitable sleep used between attempts.

    Returns:
        The first successful result of fn.

    Raises:
        The last exception raised by fn once retries are exhausted, or any
        non-retryable exception as soon as it is raised.
    """
    retry_policy = policy or RetryPolicy()
    name = getattr(fn, "__name__", repr(fn))

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if not retry_policy.is_retryable(exc):
                logger.debug(
                    "retry.not_retryable",
                    extra={"func": name, "error_type": type(exc).__name__},
                )
                raise

            if attempt >= retry_policy.max_retries:
                logger.warning(
                    "retry.exhausted",
                    extra={
                        "func": name,
                        "attempts": attempt + 1,
                        "error_type": type(exc).__name__,
                    },
                )
                raise

            delay = retry_policy.calculate_delay(attempt)
            logger.info(
                "retry.scheduled",
                extra={
                    "func": name,
                    "attempt": attempt + 1,
                    "max_retries": retry_policy.max_retries,
                    "delay_s": round(delay, 3),
                    "error_type": type(exc).__name__,
                },
            )
            await sleep(delay)
            attempt += 1


def with_retry(policy: RetryPolicy | None = None) -> Callable[[F], F]:
    """Decorator adding retry_async behavior to an async function.

    Example:
        >>> @with_retry(RetryPolicy(max_retries=5, initial_delay=0.5, factor=1.5))
        ... async def fetch_data():
        ...     ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async def call() -> Any:
                return await func(*args, **kwargs)

            call.__name__ = func.__name__
            return await retry_async(call, policy)

        return wrapper  # type: ignore[return-value]

    return decorator
