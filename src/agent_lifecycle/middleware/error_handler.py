"""Global error handling to prevent information disclosure."""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from agent_lifecycle.config import get_settings
from agent_lifecycle.exceptions import (
    ConflictError,
    LifecycleAPIError,
    NotFoundError,
    ProcessStartError,
    RuleDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error_response(request: Request, status_code: int, content: dict[str, Any]) -> JSONResponse:
    """Build an error response that still carries CORS headers.

    Exception handlers run outside the CORS middleware, so the headers are
    added here for allowed origins.
    """
    headers: dict[str, str] = {}
    origin = request.headers.get("origin")
    if origin and origin in get_settings().allowed_origins:
        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return JSONResponse(status_code=status_code, content=content, headers=headers)


# Generic messages shown when a detail cannot be passed through
SAFE_ERROR_MESSAGES = {
    400: "Invalid request",
    404: "Resource not found",
    405: "Method not allowed",
    409: "Conflict with existing resource",
    422: "Invalid input data",
    500: "Internal server error",
    502: "Service unavailable",
    503: "Service temporarily unavailable",
}

# Domain messages that are known not to leak internals
ALLOWED_ERROR_PATTERNS = [
    "Resource not found",
    "License not found",
    "Agent not found",
    "Termination record not found",
    "Reinstatement request not found",
    "Process not found",
    "Batch operation not found",
    "License was modified",
    "License number already exists",
    "Agent is already terminated",
    "Only terminated agents can be reinstated",
    "A pending reinstatement request already exists",
    "A decision was already recorded",
    "Process is not running",
    "Process could not be started",
]


def is_safe_error_message(message: str) -> bool:
    """Check whether a message matches one of the allowed domain messages."""
    lowered = message.lower()
    return any(pattern.lower() in lowered for pattern in ALLOWED_ERROR_PATTERNS)


def sanitize_error_detail(detail: Any, status_code: int) -> str:
    """Reduce an error detail to something safe to show a caller.

    Strings pass through only when they match an allowed message. Validation
    error lists are reduced to at most three ``field: message`` pairs, leaving
    out private fields.

    Args:
        detail: Original error detail
        status_code: HTTP status code used for the fallback message

    Returns:
        Safe error message
    """
    if isinstance(detail, str) and is_safe_error_message(detail):
        return detail

    if isinstance(detail, list):
        fields = []
        for error in detail:
            if not isinstance(error, dict):
                continue
            loc = error.get("loc") or ["field"]
            field = loc[-1]
            if isinstance(field, str) and not field.startswith("_"):
                fields.append(f"{field}: {error.get('msg', 'Invalid value')}")
        if fields:
            return "; ".join(fields[:3])

    return SAFE_ERROR_MESSAGES.get(status_code, "Request failed")


def status_code_for(exc: LifecycleAPIError) -> int:
    """Map a domain exception onto its HTTP status code."""
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ProcessStartError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def lifecycle_exception_handler(request: Request, exc: LifecycleAPIError) -> JSONResponse:
    """Handle domain exceptions raised by the service layer.

    Rule denials carry their typed reason so callers can branch on it.

    Args:
        request: FastAPI request
        exc: Domain exception

    Returns:
        JSONResponse with the mapped status code
    """
    status_code = status_code_for(exc)
    content: dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, RuleDeniedError):
        content["reason"] = exc.reason
    if exc.details and (get_settings().debug or status_code != 500):
        content["details"] = exc.details

    if status_code >= 500:
        logger.error("Request %s failed: %s", request.url.path, exc.message)
    else:
        logger.info("Request %s rejected (%d): %s", request.url.path, status_code, exc.message)

    return _error_response(request, status_code, content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions, hiding the detail outside debug mode."""
    detail = exc.detail if get_settings().debug else sanitize_error_detail(
        exc.detail, exc.status_code
    )
    return _error_response(request, exc.status_code, {"detail": detail})


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body and parameter validation errors."""
    logger.warning("Validation error for %s: %s", request.url.path, exc.errors())

    if get_settings().debug:
        detail: Any = exc.errors()
    else:
        detail = sanitize_error_detail(exc.errors(), status.HTTP_422_UNPROCESSABLE_ENTITY)
    return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, {"detail": detail})


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle database errors without leaking SQL or constraint names.

    Unique violations become 409 and foreign key violations 400; anything
    else is a 500.
    """
    logger.error("Database error for %s: %s", request.url.path, exc, exc_info=True)

    if isinstance(exc, IntegrityError):
        message = str(exc).lower()
        if "unique" in message or "duplicate" in message:
            return _error_response(
                request, status.HTTP_409_CONFLICT, {"detail": "Resource already exists"}
            )
        if "foreign key" in message:
            return _error_response(
                request, status.HTTP_400_BAD_REQUEST, {"detail": "Referenced resource not found"}
            )

    content: dict[str, Any] = {"detail": "Database error occurred"}
    if get_settings().debug:
        content["type"] = type(exc).__name__
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle anything unexpected with a generic 500."""
    logger.error("Unhandled exception for %s: %s", request.url.path, exc, exc_info=True)

    if get_settings().debug:
        content = {"detail": str(exc), "type": type(exc).__name__}
    else:
        content = {"detail": SAFE_ERROR_MESSAGES[500]}
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)
