from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from cardmarket.adapters.rate_limit.base import AbstractRateLimiter
from cardmarket.adapters.rate_limit.policies import REGISTRATION
from cardmarket.api.dependencies import get_account_service
from cardmarket.core.rate_limit import enforce_rate_limit, get_rate_limiter
from cardmarket.schemas.account import RegisterRequest, RegisterResponse, UserPublic
from cardmarket.services.account_service import AccountService

router = APIRouter(tags=["Auth"])


@router.post("/auth/register", response_model=RegisterResponse)
def register(
    payload: RegisterRequest,
    request: Request,
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> RegisterResponse:
    """Create a marketplace account.

    Registration attempts are limited per client IP (3 per hour, then a
    2-hour block). Every attempt counts, successful or not.

    Raises:
        RateLimitAppError: 429 when the client is over the registration limit.
        ValidationAppError: 400 for missing credentials, weak passwords or an
            already registered email.
    """
    enforce_rate_limit(request, limiter, REGISTRATION, action="registration")

    user = accounts.register(
        email=payload.email,
        password=payload.password,
        name=payload.name,
        username=payload.username,
    )
    return RegisterResponse(
        message="User created successfully",
        user=UserPublic(id=user.id, email=user.email, name=user.name, username=user.username),
    )
