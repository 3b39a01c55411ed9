"""HTTP middleware for the event digest API.

CORS setup, one structured log line per request, and translation of
``EventDigestError`` subclasses into ``ErrorResponse`` JSON bodies that
carry the status code declared on the error class.

Ordering note: Starlette runs the most recently added middleware first.
``create_app`` registers ``ErrorHandlingMiddleware`` before
``RequestLoggingMiddleware``, so a request passes through logging, then
error handling, then the route. The logged status is therefore the one
the client sees, error responses included.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import EventDigestError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Allow the configured frontend origins; empty entries mean any origin.

    Credentials are only allowed when the origin list is explicit.
    """
    origins = [o for o in (allowed_origins or []) if o] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit an ``http_request`` event with timing for each request handled."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


def error_response(exc: EventDigestError) -> JSONResponse:
    """Render *exc* as a JSON body with its class's ``http_status``."""
    body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
    return JSONResponse(status_code=exc.http_status, content=body.model_dump())


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``EventDigestError`` subclasses and return structured JSON errors.

    Client errors (4xx) are logged at warning level, upstream and
    configuration failures at error level.  Stack traces stay server-side;
    the client only sees the error class name and message.  Exceptions
    outside the hierarchy fall through to FastAPI's default 500 handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except EventDigestError as exc:
            log = _logger.warning if exc.http_status < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                status=exc.http_status,
                path=str(request.url.path),
            )
            return error_response(exc)
