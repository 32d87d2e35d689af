"""Authenticated user resolution.

Sessions are issued and verified by the upstream session layer, which
forwards the authenticated user id in a trusted header (``X-User-Id`` by
default, configurable via ``APP_USER_ID_HEADER``). This module only reads
that header.

Design principles:
- Single Responsibility: only resolves who the caller is
- Dependency Injection: used via FastAPI Depends() for loose coupling
- Testable: the parsing logic is a plain function
"""

from __future__ import annotations

import logging

from fastapi import Request

from cardmarket.core.config import settings
from cardmarket.core.errors import AuthenticationAppError
from cardmarket.core.logging import hash_for_log

logger = logging.getLogger(__name__)


def parse_user_id(raw_value: str | None) -> str | None:
    """Normalize the forwarded user id header value.

    Examples:
        >>> parse_user_id("  user-42 ")
        'user-42'
        >>> parse_user_id("") is None
        True
        >>> parse_user_id(None) is None
        True
    """
    if raw_value is None:
        return None
    value = raw_value.strip()
    return value or None


async def get_current_user_id(request: Request) -> str:
    """FastAPI dependency returning the authenticated user id.

    Usage:
        @router.put("/protected")
        async def protected(user_id: Annotated[str, Depends(get_current_user_id)]):
            ...

    Raises:
        AuthenticationAppError: no user id was forwarded (rendered as 401).
    """
    header_name = settings.app.user_id_header
    user_id = parse_user_id(request.headers.get(header_name))

    if user_id is None:
        logger.warning(
            "auth.missing_user",
            extra={"header": header_name, "request_path": request.url.path},
        )
        raise AuthenticationAppError(code="unauthorized", message="Unauthorized")

    logger.debug("auth.success", extra={"user_id_hash": hash_for_log(user_id)})
    return user_id
