"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses map to HTTP status codes (400, 429, 500)
- Unexpected Exception falls back to a generic 500
- All responses include request_id for tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ratekit.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitExceededAppError,
)
from ratekit.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_code_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitExceededAppError):
        return 429
    if isinstance(exc, ConfigurationAppError):
        # Invalid limiter configuration is a server-side fault.
        return 500
    return 400


def _resolve_request_id(request: Request) -> str | None:
    # Unhandled exceptions reach this module after the middleware has
    # cleared the context variable; request.state still holds the id.
    request_id = get_request_id()
    if request_id:
        return request_id
    state_id = getattr(getattr(request, "state", None), "request_id", None)
    return state_id if isinstance(state_id, str) else None


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to HTTP status codes:
    - ValidationAppError (and plain AppError) -> 400 Bad Request
    - RateLimitExceededAppError -> 429 Too Many Requests, with its headers
    - ConfigurationAppError -> 500 Internal Server Error

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_code_for(exc)
    request_id = _resolve_request_id(request)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
            "request_id": request_id,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": request_id,
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = exc.headers if isinstance(exc, RateLimitExceededAppError) else None

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure for debugging while returning a generic message, so no
    implementation detail or stack trace reaches the client.
    """
    request_id = _resolve_request_id(request)
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": request_id,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": request_id,
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
