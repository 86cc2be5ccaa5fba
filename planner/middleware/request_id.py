"""
Request id propagation.

A client-supplied ``X-Request-ID`` is honoured when it is a short token of
safe characters; anything else is replaced with a fresh hex id. The id is
bound into the structlog context for the duration of the request and echoed
back on the response.
"""

import logging
import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..utils.logging import RequestContext

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def accept_request_id(value: Optional[str]) -> str:
    """Return *value* if it is a usable request id, else a new one."""
    if value and _SAFE_REQUEST_ID.match(value):
        return value
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        RequestContext.set(request_id=request_id, path=request.url.path)

        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"in {(time.perf_counter() - started) * 1000:.1f} ms"
            )
            return response
        finally:
            RequestContext.clear()
