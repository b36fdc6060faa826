"""
Application error taxonomy and the handlers that turn it into responses.

Every error raised on purpose by the services derives from ``AppError``
and is rendered as ``{"error": {"code", "message", "details"}}``.
Anything else is logged with its stack trace and reported to the client
as a generic failure.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


class AppError(Exception):
    """Base class for all application exceptions."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = GENERIC_ERROR_MESSAGE

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.__class__.__name__

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationFailed(AppError):
    """Client input is malformed; ``details`` maps fields to error codes."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"

    def __init__(
        self,
        errors: Dict[str, List[str]],
        message: Optional[str] = None,
    ):
        super().__init__(message, details=errors)

    @property
    def errors(self) -> Dict[str, List[str]]:
        return self.details


class DuplicateEmail(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Email already registered"


class DuplicatePhone(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "This phone number is already registered"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, details={"phone": ["unique"]})


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthenticated"

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"WWW-Authenticate": "Bearer"}


class NotFound(AppError):
    """Missing resource, or one the caller does not own."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class StorageFailure(AppError):
    """Image storage I/O failed. The client only sees the generic message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None):
    body: Dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    return {"error": body}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a deliberate application error."""
    if isinstance(exc, StorageFailure):
        logger.error(
            "Storage failure",
            path=request.url.path,
            error=exc.message,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, GENERIC_ERROR_MESSAGE),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.details),
        headers=exc.headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map FastAPI's parameter/body validation errors onto ``ValidationFailed``."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = [
            str(part)
            for part in error.get("loc", ())
            if part not in ("body", "query", "path")
        ]
        field = ".".join(loc) or "body"
        errors.setdefault(field, []).append("invalid")
    failure = ValidationFailed(errors)
    return JSONResponse(
        status_code=failure.status_code,
        content=_error_body(failure.code, failure.message, failure.details),
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions globally."""
    logger.exception(
        "Unexpected error",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Unexpected", GENERIC_ERROR_MESSAGE),
    )


def register_exception_handlers(app) -> None:
    """Attach the error handlers to a FastAPI application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
