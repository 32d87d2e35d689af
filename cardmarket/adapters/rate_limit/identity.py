"""Client identity resolution for rate limiting."""

from __future__ import annotations

from typing import Mapping

from cardmarket.adapters.rate_limit.base import ClientContext

FORWARDED_FOR_HEADER = "x-forwarded-for"
REAL_IP_HEADER = "x-real-ip"
UNKNOWN_ADDRESS = "unknown"


def _get_header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    # Plain dicts are case-sensitive; request header objects are not.
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


def first_forwarded_address(value: str | None) -> str:
    """Return the left-most (originating) address of a proxy chain.

    Examples:
        >>> first_forwarded_address("203.0.113.5, 70.41.3.18")
        '203.0.113.5'
        >>> first_forwarded_address(None)
        'unknown'
    """
    if not value:
        return UNKNOWN_ADDRESS
    first = value.split(",", 1)[0].strip()
    return first or UNKNOWN_ADDRESS


def resolve_client_identity(context: ClientContext, identifier: str | None = None) -> str:
    """Resolve the key attempts are counted against.

    Priority:
        1. An explicit ``identifier`` gives ``"user:<identifier>"``.
        2. A string ``context`` is taken as an already resolved identity.
        3. Headers give ``"ip:<address>"`` from ``X-Forwarded-For``, then
           ``X-Real-IP``, then the literal ``unknown``.

    Never raises: missing or malformed headers degrade to ``"ip:unknown"``.
    """
    if identifier:
        return f"user:{identifier}"

    if isinstance(context, str):
        return context

    raw = _get_header(context, FORWARDED_FOR_HEADER) or _get_header(context, REAL_IP_HEADER)
    return f"ip:{first_forwarded_address(raw)}"
