from __future__ import annotations

from ratekit.api.routes.health import router as health_router
from ratekit.api.routes.limits import router as limits_router

__all__ = ["health_router", "limits_router"]
