"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- The forwarded user id header as a security scheme on authenticated routes
- Documentation of the 429 response on rate-limited routes

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from cardmarket.core.config import settings

# Operations guarded by the abuse limiter, as (path, method)
RATE_LIMITED_OPERATIONS = {
    ("/v1/auth/register", "post"),
    ("/v1/user/change-password", "put"),
}

# Operations requiring an authenticated user
AUTHENTICATED_OPERATIONS = {
    ("/v1/user/change-password", "put"),
}

_TOO_MANY_REQUESTS = {
    "description": (
        "Too many attempts. The error details carry remaining_attempts and "
        "reset_time (ISO-8601); Retry-After gives the wait in seconds."
    ),
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "UserIdHeader",
            {
                "type": "apiKey",
                "in": "header",
                "name": settings.app.user_id_header,
                "description": "Authenticated user id forwarded by the session layer.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {"name": "Auth", "description": "Account registration."},
            {"name": "User", "description": "Authenticated account management."},
            {"name": "Health", "description": "Liveness checks."},
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                if (path, method) in AUTHENTICATED_OPERATIONS:
                    operation["security"] = [{"UserIdHeader": []}]
                if (path, method) in RATE_LIMITED_OPERATIONS:
                    operation.setdefault("responses", {}).setdefault("429", _TOO_MANY_REQUESTS)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
