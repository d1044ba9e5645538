"""Middleware and exception handlers for request IDs, logging, and errors.

Middleware stack (executed in reverse registration order):
    1. RequestIDMiddleware     → Assigns unique X-Request-ID to every request
    2. LoggingMiddleware       → Logs method, path, status, and duration
    3. SecurityHeaders         → Adds browser hardening headers
    4. ErrorHandlerMiddleware  → Catches unhandled exceptions → JSON error response

Every error body this service emits has the same shape:
    {"success": false, "error": "<human readable message>"}

Called by: main.py (``register_middleware()``, ``register_exception_handlers()``)
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()

GENERIC_ERROR_MESSAGE = "Import failed. Please try again."


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the client's ``X-Request-ID`` or mint one, and echo it back."""

    async def dispatch(self, request: Request, call_next):  # noqa: ANN001
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status, and duration."""

    async def dispatch(self, request: Request, call_next):  # noqa: ANN001
        start = time.perf_counter()

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        request_id = getattr(request.state, "request_id", "unknown")

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
            request_id=request_id,
        )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn any unhandled exception into a sanitized 500 JSON body."""

    async def dispatch(self, request: Request, call_next):  # noqa: ANN001
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception(
                "unhandled_error",
                error=str(exc),
                request_id=request_id,
                path=request.url.path,
            )
            return error_response(500, GENERIC_ERROR_MESSAGE)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add standard security hardening headers to every response."""

    async def dispatch(self, request: Request, call_next):  # noqa: ANN001
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else GENERIC_ERROR_MESSAGE
    response = error_response(exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "")
    else:
        message = "Invalid request body"
    return error_response(422, message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)


def register_middleware(app: FastAPI) -> None:
    """Register all middleware in the correct order.

    Starlette middleware is executed in reverse registration order,
    so we register in this order:
        1. ErrorHandler    (registered first → executed last → outermost wrapper)
        2. SecurityHeaders (injects hardening headers)
        3. Logging         (logs request details)
        4. RequestID       (registered last → executed first → assigns request ID)
    """
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
