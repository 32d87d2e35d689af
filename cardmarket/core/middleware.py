"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request ID so that limiter decisions,
account events and error responses can be correlated in the logs.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from cardmarket.core.config import settings
from cardmarket.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Accept or generate a request ID and echo it on the response.

    The incoming ``X-Request-ID`` header (configurable through
    ``LOG_REQUEST_ID_HEADER``) is reused when present, otherwise a UUID4 is
    generated. The ID lives in a context variable for the duration of the
    request and is cleared afterwards.

    Side Effects:
        - Adds the request ID header to the response
        - Adds X-Request-Duration-ms header to the response
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
