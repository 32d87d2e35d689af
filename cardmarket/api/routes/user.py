from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from cardmarket.adapters.rate_limit.base import AbstractRateLimiter
from cardmarket.adapters.rate_limit.policies import PASSWORD_CHANGE
from cardmarket.api.dependencies import get_account_service
from cardmarket.core.auth import get_current_user_id
from cardmarket.core.rate_limit import enforce_rate_limit, get_rate_limiter, reset_rate_limit
from cardmarket.schemas.account import ChangePasswordRequest, MessageResponse
from cardmarket.services.account_service import AccountService

router = APIRouter(tags=["User"])


@router.put("/user/change-password", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    user_id: Annotated[str, Depends(get_current_user_id)],
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> MessageResponse:
    """Change the authenticated user's password.

    Attempts are limited per user id (3 per hour, then a 2-hour block), so
    switching networks does not buy extra guesses. A successful change clears
    the counter.
    """
    enforce_rate_limit(
        request,
        limiter,
        PASSWORD_CHANGE,
        action="password_change",
        identifier=user_id,
    )

    accounts.change_password(
        user_id=user_id,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )

    reset_rate_limit(request, limiter, action="password_change", identifier=user_id)
    return MessageResponse(message="Password changed successfully")
