"""
JSON error responses for the planner API.

Unhandled exceptions become a sanitized 500 carrying the request id; domain
errors raised by routes and dependencies are mapped onto 4xx/5xx statuses by
``register_exception_handlers``.
"""

import logging
import traceback
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..domain.errors import (
    DomainError,
    PlannerValidationError,
    StorageUploadFailure,
    TaskNotFound,
    UnsupportedImage,
)
from .request_id import accept_request_id

logger = logging.getLogger(__name__)

# Most specific first
_DOMAIN_STATUS = (
    (PlannerValidationError, 422),
    (TaskNotFound, 404),
    (UnsupportedImage, 415),
    (StorageUploadFailure, 502),
)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last-resort handler: nothing but a generic message leaves the process.

    With ``expose_tracebacks`` (development only) the traceback is included.
    """

    def __init__(self, app, expose_tracebacks: bool = False) -> None:
        super().__init__(app)
        self.expose_tracebacks = expose_tracebacks

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = getattr(request.state, "request_id", None) or accept_request_id(None)
        request.state.request_id = request_id

        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Unhandled {type(e).__name__} on {request.method} {request.url.path} "
                f"[{request_id}]: {e}",
                exc_info=True,
            )
            error = {"message": "Internal server error"}
            if self.expose_tracebacks:
                error["traceback"] = traceback.format_exc()
            return JSONResponse(
                status_code=500,
                content={"error": error, "request_id": request_id},
            )


def status_for(error: DomainError) -> int:
    for error_type, status_code in _DOMAIN_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 400


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for(exc)
    request_id = getattr(request.state, "request_id", None)
    log = logger.info if status_code < 500 else logger.error
    log(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}")
    body = get_error_response(exc, request_id=request_id)
    field = getattr(exc, "field", None)
    if field:
        body["error"]["field"] = field
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Map every DomainError subclass onto its HTTP status."""
    app.add_exception_handler(DomainError, domain_error_handler)


def get_error_response(
    error: Exception,
    request_id: Optional[str] = None,
    include_traceback: bool = False,
) -> dict:
    """
    Build a standard error response dict.

    Args:
        error: The exception that occurred
        request_id: Optional request ID for tracking
        include_traceback: Whether to include full traceback (dev only)

    Returns:
        Error response dictionary
    """
    response = {
        "error": {
            "message": str(error),
            "type": type(error).__name__,
        },
    }

    if request_id:
        response["request_id"] = request_id

    if include_traceback:
        response["error"]["traceback"] = traceback.format_exc()

    return response
