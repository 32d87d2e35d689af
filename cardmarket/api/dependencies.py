"""FastAPI dependencies resolving application-owned collaborators."""

from __future__ import annotations

from fastapi import Request

from cardmarket.core.config import settings
from cardmarket.services.account_service import AccountService


def get_account_service(request: Request) -> AccountService:
    """Build an AccountService over the user repository on ``app.state``."""

    return AccountService(
        request.app.state.user_repository,
        bcrypt_rounds=settings.password.bcrypt_rounds,
    )
