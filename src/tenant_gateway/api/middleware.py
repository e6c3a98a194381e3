"""
Middleware and exception handlers for the Tenant Database Gateway API.

This module contains:
- HTTP middleware for trace ids and request logging
- Exception handlers turning GatewayException subclasses into JSON bodies

Exception Handling Strategy:
- Hard errors (validation, ownership, routing, credentials) are raised by
  the gateway and converted here using their http_status / error_code
- Statement failures never reach this module; they are returned inside the
  operation's result
- Every error body carries the request's trace_id

Usage in main.py:
    from .api.middleware import register_exception_handlers
    register_exception_handlers(app)
"""

from datetime import datetime, timezone
from typing import Callable, Dict

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.errors import GatewayException
from ..domain.responses import ErrorResponse
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id, elapsed_ms, generate_trace_id, set_trace_id, start_timer

logger = get_module_logger()

TRACE_HEADER = "X-Trace-ID"


# =============================================================================
# Middleware Functions
# =============================================================================


async def trace_id_middleware(request: Request, call_next: Callable) -> Response:
    """
    Take the trace id from X-Trace-ID (or generate one), bind it to the
    request context, and echo it on the response.
    """
    trace_id = request.headers.get(TRACE_HEADER) or generate_trace_id()
    set_trace_id(trace_id)

    response = await call_next(request)
    response.headers[TRACE_HEADER] = trace_id
    return response


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log request start and completion with duration; sets X-Process-Time."""
    started = start_timer()
    trace_id = current_trace_id()

    logger.info(
        "HTTP request started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
        trace_id=trace_id,
    )

    response = await call_next(request)

    duration_ms = elapsed_ms(started)
    response.headers["X-Process-Time"] = str(duration_ms)

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        trace_id=trace_id,
    )

    return response


# =============================================================================
# Exception Handlers
# =============================================================================


def _create_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Dict | None = None,
) -> JSONResponse:
    """
    Build the uniform error body:
    {"error", "message", "details"?, "trace_id", "timestamp"}
    """
    error_response = ErrorResponse(
        error=error_code.lower(),
        message=message,
        details=details,
        trace_id=current_trace_id(),
        timestamp=datetime.now(timezone.utc),
    )

    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def gateway_exception_handler(request: Request, exc: GatewayException) -> JSONResponse:
    """Map any GatewayException subclass onto its http_status and error_code."""
    log_level = "warning" if exc.http_status < 500 else "error"
    getattr(logger, log_level)(
        f"{exc.__class__.__name__}: {exc.message}",
        error_code=exc.error_code,
        http_status=exc.http_status,
        details=exc.details,
        path=request.url.path,
        method=request.method,
        trace_id=current_trace_id(),
    )

    return _create_error_response(
        status_code=exc.http_status,
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details or None,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters (pydantic) -> 422."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        error_count=len(errors),
        errors=errors,
        path=request.url.path,
        method=request.method,
        trace_id=current_trace_id(),
    )

    return _create_error_response(
        status_code=422,
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        details={"errors": errors},
    )


_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")

    log_level = "warning" if exc.status_code < 500 else "error"
    getattr(logger, log_level)(
        f"HTTP {exc.status_code}: {exc.detail}",
        error_code=error_code,
        http_status=exc.status_code,
        path=request.url.path,
        method=request.method,
        trace_id=current_trace_id(),
    )

    return _create_error_response(
        status_code=exc.status_code,
        error_code=error_code,
        message=str(exc.detail) if exc.detail else f"HTTP {exc.status_code} error",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback: log everything, expose nothing but the trace id."""
    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        trace_id=current_trace_id(),
        exc_info=True,
    )

    return _create_error_response(
        status_code=500,
        error_code="INTERNAL_ERROR",
        message="An internal server error occurred. Please try again later.",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Exception handling priority (most specific first):
    1. GatewayException and subclasses
    2. RequestValidationError (pydantic)
    3. StarletteHTTPException
    4. Exception (fallback)
    """
    # add_exception_handler is typed for the base Exception
    app.add_exception_handler(GatewayException, gateway_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info(
        "Exception handlers registered",
        handlers=["GatewayException", "RequestValidationError", "StarletteHTTPException", "Exception (fallback)"],
    )


# =============================================================================
# OpenAPI Error Response Models (for documentation)
# =============================================================================


def _error_example(description: str, error: str, message: str) -> Dict:
    return {
        "description": description,
        "model": ErrorResponse,
        "content": {
            "application/json": {
                "example": {
                    "error": error,
                    "message": message,
                    "trace_id": "550e8400-e29b-41d4-a716-446655440000",
                    "timestamp": "2024-01-15T10:30:00Z",
                }
            }
        },
    }


ERROR_RESPONSES = {
    401: _error_example("Missing or malformed X-User-ID header", "unauthorized", "missing X-User-ID header"),
    404: _error_example("Project absent or not owned by the caller", "not_found", "project not found or not accessible"),
    422: _error_example("Invalid identifier, column type, default or request body", "validation_error", "invalid table name '1bad'"),
    500: _error_example("Stored credential could not be decrypted", "decryption_failed", "failed to decrypt database credentials"),
    503: _error_example("Tenant database could not be routed", "no_running_instance", "no running database instance for this project"),
}
