"""Rate limiting dependency for FastAPI routes.

This module wires the limiter adapters into the HTTP layer.

- Routes depend on a dependency function only, never on a concrete limiter.
- The strategy (fixed_window or token_bucket) is picked from settings.
- Each caller is limited independently: by the client id header when
  present, otherwise by client IP.
"""

from __future__ import annotations

import logging
import math
import threading

from fastapi import Request

from ratekit.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from ratekit.adapters.rate_limit.factory import create_rate_limiter
from ratekit.core.config import RateLimitSettings, settings
from ratekit.core.errors import RateLimitExceededAppError
from ratekit.core.logging import hash_identifier

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: RateLimitSettings | None = None
_limiter_lock = threading.Lock()


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide limiter instance.

    The instance is cached in-module to preserve state across requests.
    If the rate limit configuration changes (primarily in tests), the
    limiter is rebuilt with empty state.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = settings.rate_limit.model_copy()

    with _limiter_lock:
        if _limiter is None or _limiter_config != config:
            _limiter = create_rate_limiter(config)
            _limiter_config = config
        return _limiter


def reset_rate_limiter() -> None:
    """Drop the cached limiter so the next call builds a fresh one."""

    global _limiter, _limiter_config

    with _limiter_lock:
        _limiter = None
        _limiter_config = None


def build_rate_limit_key(request: Request, client_id: str | None) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.
        client_id: Value of the configured client id header, if any.

    Returns:
        str: Namespaced limiter key.
    """

    if client_id:
        return f"client:{client_id}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def retry_after_header(result: RateLimitResult) -> int:
    """Whole seconds for the Retry-After header (at least 1 when blocked)."""

    if result.retry_after_seconds is None:
        return 0
    return max(1, int(math.ceil(result.retry_after_seconds)))


def build_rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Headers describing the caller's budget after a throttled request."""

    limit = result.limit
    if isinstance(limit, float) and limit.is_integer():
        limit = int(limit)

    headers = {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(retry_after_header(result))
    return headers


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing per-client rate limits.

    When enabled, consumes 1 unit from the caller's budget. If the caller is
    over its limit, raises RateLimitExceededAppError (rendered as HTTP 429).

    Args:
        request: FastAPI request.

    Raises:
        RateLimitExceededAppError: When the rate limit is exceeded.
    """

    config = settings.rate_limit
    if not config.enabled:
        return

    limiter = get_rate_limiter()
    client_id = request.headers.get(config.client_id_header)
    key = build_rate_limit_key(request, client_id)
    key_hash = hash_identifier(key)
    key_type = "client" if client_id else "ip"

    result = limiter.consume(key)
    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "strategy": config.strategy,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": key_hash,
            "strategy": config.strategy,
            "limit": result.limit,
            "remaining": result.remaining,
            "retry_after_s": result.retry_after_seconds,
        },
    )

    headers = build_rate_limit_headers(result) if config.include_headers else None
    details = {"limit": result.limit, "remaining": result.remaining}
    if result.retry_after_seconds is not None:
        details["retry_after"] = result.retry_after_seconds

    raise RateLimitExceededAppError(
        code="rate_limit_exceeded",
        message="Rate limit exceeded. Try again later.",
        details=details,
        headers=headers,
    )
