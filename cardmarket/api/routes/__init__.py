from __future__ import annotations

from cardmarket.api.routes.auth import router as auth_router
from cardmarket.api.routes.health import router as health_router
from cardmarket.api.routes.user import router as user_router

__all__ = ["auth_router", "health_router", "user_router"]
