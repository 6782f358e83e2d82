"""API middleware — CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and the
conversion of service errors into ``{"success": false, "error": ...}``
JSON bodies.

# ─── MIDDLEWARE EXECUTION ORDER ───────────────────────────────────────
#
# Starlette middleware is a stack (LIFO: last added runs first):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)   # added 1st → inner
#     app.add_middleware(RequestLoggingMiddleware)   # added 2nd → outermost
#
#   Request flow:
#     Client → RequestLogging → ErrorHandling → route handler
#
# Exception handlers (register_exception_handlers) run inside the route
# layer, so RequestValidationError (400), AttachmentMissingError (404) and
# HTTPException never reach ErrorHandlingMiddleware; it only sees
# unexpected errors, DualLLMError or otherwise (500).
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ApiResponse
from src.utils.errors import AttachmentMissingError, DualLLMError, RequestValidationError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    body = ApiResponse(success=False, error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; override with specific origins in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        # The browser needs this header to address the cancel endpoint.
        expose_headers=["X-Stream-Id"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

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
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn any error escaping a route into a structured JSON 500.

    Stack traces are logged server-side only, never sent to the client.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except DualLLMError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            return error_response(500, "Error interno del servidor")
        except Exception:
            _logger.exception("unhandled_error", path=str(request.url.path))
            return error_response(500, "Error interno del servidor")


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    _logger.info("request_rejected", path=str(request.url.path), reason=exc.message)
    return error_response(400, exc.message)


async def _attachment_missing_handler(request: Request, exc: AttachmentMissingError) -> JSONResponse:
    return error_response(404, exc.message)


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


def register_exception_handlers(app: FastAPI) -> None:
    """Map request-level errors onto the ``{success: false}`` envelope."""
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(AttachmentMissingError, _attachment_missing_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
