"""Pydantic schemas for rate limit check and policy endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitCheckRequest(BaseModel):
    """Ask whether a request for an identifier may proceed."""

    identifier: str = Field(
        ...,
        description="Key the limit applies to (user id, IP address, ...). Any string.",
    )
    cost: float = Field(
        1,
        gt=0,
        description=(
            "Units to consume. Must be a whole number for fixed_window; "
            "token_bucket accepts fractional amounts."
        ),
    )


class RateLimitCheckResponse(BaseModel):
    """Decision for a single check. A denial is a normal result, not an error."""

    identifier: str = Field(..., description="Identifier that was checked.")
    strategy: str = Field(..., description="Limiting algorithm in use.")
    allowed: bool = Field(..., description="Whether the request may proceed.")
    limit: float = Field(
        ..., description="Max requests per window, or bucket capacity."
    )
    remaining: int = Field(
        ..., description="Whole units still available after this check."
    )
    retry_after_seconds: float | None = Field(
        default=None,
        description="Suggested wait before retrying when denied (null when allowed or never satisfiable).",
    )


class RateLimitPolicyResponse(BaseModel):
    """Active rate limiting policy."""

    enabled: bool
    strategy: str
    max_requests: int | None = Field(
        default=None, description="Requests per window (fixed_window only)."
    )
    time_window_ms: int | None = Field(
        default=None, description="Window size in milliseconds (fixed_window only)."
    )
    capacity: float | None = Field(
        default=None, description="Bucket capacity (token_bucket only)."
    )
    refill_rate: float | None = Field(
        default=None, description="Tokens added per second (token_bucket only)."
    )
