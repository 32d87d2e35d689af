"""Application factory for the FastAPI app.

Centralizes app construction (metadata, lifespan-owned collaborators,
middleware, handlers, routers) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from cardmarket.adapters.rate_limit.base import AbstractRateLimiter
from cardmarket.adapters.users.base import AbstractUserRepository
from cardmarket.adapters.users.in_memory import InMemoryUserRepository
from cardmarket.api.routes import auth_router, health_router, user_router
from cardmarket.core.config import settings
from cardmarket.core.exception_handlers import setup_exception_handlers
from cardmarket.core.logging import configure_logging
from cardmarket.core.middleware import request_id_middleware
from cardmarket.core.openapi import apply_openapi_customizations
from cardmarket.core.rate_limit import create_rate_limiter

logger = logging.getLogger(__name__)


def create_app(
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    user_repository: AbstractUserRepository | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to use instead of one built from settings.
        user_repository: User store to use instead of a fresh in-memory one.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    limiter = rate_limiter or create_rate_limiter(settings.rate_limit)
    users = user_repository or InMemoryUserRepository()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        limiter.start()
        logger.info("app.started", extra={"app_env": settings.app_env})
        try:
            yield
        finally:
            limiter.stop()
            logger.info("app.stopped")

    app = FastAPI(
        title="Card Marketplace API",
        description=(
            "Account endpoints of the collectible-card marketplace. Registration "
            "and password change are protected by a per-client abuse limiter "
            "with temporary hard blocks."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )
    app.state.rate_limiter = limiter
    app.state.user_repository = users

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(auth_router, prefix="/v1")
    app.include_router(user_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
