"""OpenAPI metadata and customization utilities.

Enriches the generated schema with tags metadata and documents the
client id header and the 429 response on throttled operations.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from ratekit.core.config import settings
from ratekit.utils.merge import deep_merge

TAGS_METADATA = [
    {
        "name": "Limits",
        "description": "Rate limit checks and the active policy.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]

RATE_LIMITED_RESPONSE = {
    "429": {
        "description": "Rate limit exceeded.",
        "headers": {
            "Retry-After": {"schema": {"type": "integer"}},
            "X-RateLimit-Limit": {"schema": {"type": "number"}},
            "X-RateLimit-Remaining": {"schema": {"type": "integer"}},
        },
    }
}

# Operations guarded by enforce_rate_limit.
THROTTLED_PATHS = {"/v1/limits/policy"}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and throttling docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        client_header = {
            "name": settings.rate_limit.client_id_header,
            "in": "header",
            "required": False,
            "description": "Caller identity for rate limiting; client IP is used when absent.",
            "schema": {"type": "string"},
        }

        for path, methods in schema.get("paths", {}).items():
            if path not in THROTTLED_PATHS:
                continue
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                methods[method] = deep_merge(
                    operation,
                    {"responses": RATE_LIMITED_RESPONSE},
                )
                methods[method].setdefault("parameters", []).append(client_header)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
