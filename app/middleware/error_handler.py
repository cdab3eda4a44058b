"""Error handling middleware.

Every error leaves the API as ``{"error", "message", "path"}``. Request schema
errors add ``details``. Storage and unexpected errors never carry driver text.
"""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException, TransientStorageException

logger = structlog.get_logger(__name__)

# Seconds a client should wait before retrying after a storage timeout
RETRY_AFTER_SECONDS = 1


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: Any,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    content = {"error": error, "message": message, "path": str(request.url), **extra}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Slot conflicts and validation failures are expected traffic and are not
    logged here; the services already log them with booking context.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    headers = None
    if isinstance(exc, TransientStorageException):
        logger.warning("storage_unavailable", path=request.url.path)
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}

    return _error_response(
        request, exc.status_code, exc.__class__.__name__, exc.message, headers=headers
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions raised by routing and auth dependencies."""
    return _error_response(
        request,
        exc.status_code,
        "HTTPException",
        exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request schema errors as bad requests."""
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        "Request validation failed",
        details=jsonable_encoder(exc.errors()),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing their detail."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error_type=exc.__class__.__name__,
        error=str(exc),
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred",
    )
