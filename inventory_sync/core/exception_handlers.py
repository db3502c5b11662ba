"""
Exception handlers for FastAPI.

Centralized exception handling with structured error responses and logging.
Sync outcomes are not exceptions and never reach these handlers; they are
mapped to status codes by the inventory routes.
"""
import logging
import uuid
from typing import Any, Dict

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from inventory_sync.core.config import get_settings
from inventory_sync.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    InventorySyncError,
    SnapshotNotFoundError,
    SteamAPIError,
    UserNotFoundError,
)

settings = get_settings()
logger = logging.getLogger(__name__)


def get_trace_id(request: Request) -> str:
    """Trace ID from X-Trace-Id / X-Request-Id / X-Correlation-Id, or a new UUID."""
    trace_id = (
        request.headers.get("X-Trace-Id")
        or request.headers.get("X-Request-Id")
        or request.headers.get("X-Correlation-Id")
    )
    return trace_id or str(uuid.uuid4())


async def inventory_sync_error_handler(
    request: Request,
    exc: InventorySyncError,
) -> JSONResponse:
    """
    Handle InventorySyncError exceptions.

    Args:
        request: FastAPI request object
        exc: InventorySyncError exception

    Returns:
        JSONResponse with error details and the trace id
    """
    trace_id = get_trace_id(request)

    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"InventorySyncError: {exc.error_code} - {exc.detail}",
        extra={
            "trace_id": trace_id,
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "context": exc.context,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=settings.DEBUG,
    )

    response_data = exc.to_dict()
    response_data["error"]["trace_id"] = trace_id

    return JSONResponse(
        status_code=exc.status_code,
        content=response_data,
        headers={"X-Trace-Id": trace_id},
    )


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request validation errors from FastAPI.

    Args:
        request: FastAPI request object
        exc: RequestValidationError exception

    Returns:
        JSONResponse with per-field error details
    """
    trace_id = get_trace_id(request)

    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", []))
        errors.append({
            "field": field,
            "message": error.get("msg"),
            "type": error.get("type"),
        })

    logger.warning(
        f"Validation error: {len(errors)} field(s) failed validation",
        extra={
            "trace_id": trace_id,
            "errors": errors,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "errors": errors,
                "trace_id": trace_id,
            }
        },
        headers={"X-Trace-Id": trace_id},
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions. The message is only exposed in debug mode."""
    trace_id = get_trace_id(request)

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        extra={
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )

    error_detail = str(exc) if settings.DEBUG else "An internal error occurred"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": error_detail,
                "trace_id": trace_id,
            }
        },
        headers={"X-Trace-Id": trace_id},
    )


# Exception handler mapping
EXCEPTION_HANDLERS: Dict[Any, Any] = {
    InventorySyncError: inventory_sync_error_handler,
    UserNotFoundError: inventory_sync_error_handler,
    SnapshotNotFoundError: inventory_sync_error_handler,
    SteamAPIError: inventory_sync_error_handler,
    DatabaseError: inventory_sync_error_handler,
    ConfigurationError: inventory_sync_error_handler,
    RequestValidationError: validation_error_handler,
    # Generic exception (must be last)
    Exception: generic_exception_handler,
}
