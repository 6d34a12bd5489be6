"""Application-level exception types.

This module defines domain errors used across limiters, utilities and the
HTTP layer, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep the shape flexible while encouraging
    consistent keys across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    actual_value: Any
    limit: float
    remaining: int
    retry_after: float
    strategy: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when client input validation fails."""


class ConfigurationAppError(AppError):
    """Raised when a limiter or utility is built with invalid parameters."""


class RateLimitExceededAppError(AppError):
    """Raised by the HTTP layer when a client exhausted its budget.

    Attributes:
        headers: Response headers to attach (Retry-After, X-RateLimit-*).
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: ErrorDetails | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(code=code, message=message, details=details)
        self.headers = headers or {}
