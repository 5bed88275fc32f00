"""
Exception handlers for the FastAPI application.
Every failure leaves the API in the same error envelope.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from classroom_chat.exceptions.custom_exceptions import BaseCustomException

# Configure logger
logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standard error response format."""

    def __init__(
        self,
        error_code: str,
        message: str,
        user_message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        timestamp: Optional[str] = None
    ):
        self.error_code = error_code
        self.message = message
        self.user_message = user_message
        self.details = details or {}
        self.request_id = request_id or str(uuid.uuid4())
        self.timestamp = timestamp or datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "user_message": self.user_message,
                "details": self.details,
                "request_id": self.request_id,
                "timestamp": self.timestamp
            }
        }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _get_user_friendly_message(status_code: int) -> str:
    messages = {
        400: "Bad request. Please check your input",
        401: "Authentication required. Please log in",
        403: "Access denied. You don't have permission",
        404: "Resource not found",
        405: "Method not allowed",
        409: "Conflict with the current state of the resource",
        422: "Invalid input. Please check your data",
        429: "Too many requests. Please try again later",
        500: "Internal server error. Please try again later",
        503: "Service temporarily unavailable"
    }
    return messages.get(status_code, "An error occurred")


async def custom_exception_handler(request: Request, exc: BaseCustomException):
    """Handler for the service's own exceptions."""
    if exc.status_code >= 500:
        logger.error(f"Server error on {request.method} {request.url.path}: [{exc.error_code}] {exc.detail}")
    else:
        logger.warning(f"Client error on {request.method} {request.url.path}: [{exc.error_code}] {exc.detail}")

    field_errors = getattr(exc, "field_errors", None)
    error_response = ErrorResponse(
        error_code=exc.error_code,
        message=exc.detail,
        user_message=exc.user_message,
        details={"field_errors": field_errors} if field_errors else {},
        request_id=_request_id(request)
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.to_dict(),
        headers=exc.headers
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handler for framework raised HTTP errors such as unknown routes."""
    error_response = ErrorResponse(
        error_code=f"HTTP_{exc.status_code}",
        message=str(exc.detail),
        user_message=_get_user_friendly_message(exc.status_code),
        request_id=_request_id(request)
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.to_dict(),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler for validation exceptions."""
    field_errors = {}
    for error in exc.errors():
        field_name = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_name] = error["msg"]

    logger.warning(f"Request validation failed on {request.method} {request.url.path}: {field_errors}")

    error_response = ErrorResponse(
        error_code="VAL_001",
        message="Request validation failed",
        user_message="Please check your input and try again",
        details={"field_errors": field_errors},
        request_id=_request_id(request)
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.to_dict()
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """Handler for anything else; details stay in the log."""
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=exc)

    error_response = ErrorResponse(
        error_code="SYS_001",
        message="Internal server error",
        user_message="An unexpected error occurred. Please try again later",
        request_id=_request_id(request)
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseCustomException, custom_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)
