"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from ratekit.api.routes import health_router, limits_router
from ratekit.core.config import settings
from ratekit.core.exception_handlers import setup_exception_handlers
from ratekit.core.logging import configure_logging
from ratekit.core.middleware import request_id_middleware
from ratekit.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title=settings.app.title,
        description=(
            "In-process rate limiting service. Checks identifiers against a "
            "fixed-window or token-bucket policy and throttles its own "
            "protected routes per client."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
