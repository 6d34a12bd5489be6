from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ratekit.core.config import settings
from ratekit.core.errors import ConfigurationAppError, ValidationAppError
from ratekit.core.logging import hash_identifier
from ratekit.core.rate_limit import enforce_rate_limit, get_rate_limiter
from ratekit.schemas.limits import (
    RateLimitCheckRequest,
    RateLimitCheckResponse,
    RateLimitPolicyResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Limits"])


@router.post("/limits/check", response_model=RateLimitCheckResponse)
async def check_limit(payload: RateLimitCheckRequest) -> RateLimitCheckResponse:
    """Consume budget for an identifier and report the decision.

    Identifiers share the limiter used for request throttling but live in
    their own ``limit:`` key namespace, so checks never eat into a caller's
    HTTP budget.

    Raises:
        ValidationAppError: If cost is not valid for the active strategy.
    """
    limiter = get_rate_limiter()
    try:
        result = limiter.consume(f"limit:{payload.identifier}", cost=payload.cost)
    except ConfigurationAppError as exc:
        raise ValidationAppError(
            code=exc.code,
            message=exc.message,
            details=exc.details,
        ) from exc

    logger.debug(
        "rate_limit.checked",
        extra={
            "key_hash": hash_identifier(payload.identifier),
            "allowed": result.allowed,
            "remaining": result.remaining,
        },
    )

    return RateLimitCheckResponse(
        identifier=payload.identifier,
        strategy=settings.rate_limit.strategy,
        allowed=result.allowed,
        limit=result.limit,
        remaining=result.remaining,
        retry_after_seconds=result.retry_after_seconds,
    )


@router.get(
    "/limits/policy",
    response_model=RateLimitPolicyResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
def get_policy() -> RateLimitPolicyResponse:
    """Describe the active rate limiting policy."""
    config = settings.rate_limit
    if config.strategy == "token_bucket":
        return RateLimitPolicyResponse(
            enabled=config.enabled,
            strategy=config.strategy,
            capacity=config.capacity,
            refill_rate=config.refill_rate,
        )
    return RateLimitPolicyResponse(
        enabled=config.enabled,
        strategy=config.strategy,
        max_requests=config.max_requests,
        time_window_ms=config.time_window_ms,
    )
