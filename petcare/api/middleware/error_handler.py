"""
Error handler middleware and custom exceptions.

Route handlers translate failed service results into these exceptions; the
handlers below turn them into `{error, correlation_id, details?}` responses.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from petcare.lib.logging import get_correlation_id, get_logger

logger = get_logger(__name__)


class AppException(Exception):
    """Base application exception carrying an HTTP status and response details."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """A booking, series or policy does not exist."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            message,
            status.HTTP_404_NOT_FOUND,
            {"resource": resource, "resource_id": resource_id},
        )


class BadRequestException(AppException):
    """The request was well-formed but could not be carried out."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class ConflictException(AppException):
    """The booking or series is in a state that does not allow the action."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class ValidationException(AppException):
    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {"errors": errors or {}},
        )


def _correlation_id(request: Request) -> str:
    return (
        getattr(request.state, "correlation_id", None)
        or get_correlation_id()
        or "unknown"
    )


def _error_response(
    request: Request,
    status_code: int,
    error: Any,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "error": error,
        "correlation_id": _correlation_id(request),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Refusals and missing resources are warnings; 5xx are errors."""
    logger.log(
        logging.WARNING if exc.status_code < 500 else logging.ERROR,
        f"{request.method} {request.url.path} failed with {exc.status_code}: {exc.message}",
    )
    return _error_response(request, exc.status_code, exc.message, exc.details)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    errors = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    logger.warning(f"Rejected {request.method} {request.url.path}: {len(errors)} invalid field(s)")
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        {"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return _error_response(request, exc.status_code, exc.detail)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Logs the full stack trace and returns a generic error message.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=True,
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
    )
