"""
Custom exception classes for the chat service.
"""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class BaseCustomException(HTTPException):
    """Base class for all custom exceptions."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str,
        headers: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.user_message = user_message or detail


class AuthenticationError(BaseCustomException):
    """Raised when the bearer token is missing or cannot be verified."""

    def __init__(
        self,
        detail: str = "Authentication failed",
        error_code: str = "AUTH_001",
        user_message: str = "Please log in to access this resource"
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            user_message=user_message,
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(BaseCustomException):
    """Raised when an authenticated user is not allowed to perform the action."""

    def __init__(
        self,
        detail: str = "Insufficient permissions",
        error_code: str = "AUTH_002",
        user_message: str = "You don't have permission to perform this action"
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=error_code,
            user_message=user_message
        )


class ValidationError(BaseCustomException):
    """Raised when input is malformed or violates configured bounds."""

    def __init__(
        self,
        detail: str = "Validation failed",
        error_code: str = "VAL_001",
        user_message: str = "Please check your input and try again",
        field_errors: Optional[Dict[str, str]] = None
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code,
            user_message=user_message
        )
        self.field_errors = field_errors or {}


class NotFoundError(BaseCustomException):
    """Raised when a referenced room or message does not exist."""

    def __init__(
        self,
        detail: str = "Resource not found",
        error_code: str = "NF_001",
        user_message: str = "The requested resource was not found"
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code,
            user_message=user_message
        )


class ConflictError(BaseCustomException):
    """Raised when the action would break a room invariant."""

    def __init__(
        self,
        detail: str = "Conflict",
        error_code: str = "CONF_001",
        user_message: str = "This action conflicts with the current state of the room"
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code,
            user_message=user_message
        )


class CapacityError(BaseCustomException):
    """Raised when a room has no free seat."""

    def __init__(
        self,
        detail: str = "Room is at maximum capacity",
        error_code: str = "CAP_001",
        user_message: str = "This room is full"
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code,
            user_message=user_message
        )


class TransientStoreError(BaseCustomException):
    """Raised when the backing store keeps timing out or throttling after retries."""

    def __init__(
        self,
        detail: str = "Backing store temporarily unavailable",
        error_code: str = "STORE_001",
        user_message: str = "Service is temporarily unavailable. Please try again later",
        retry_after: Optional[int] = None
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code=error_code,
            user_message=user_message,
            headers=headers
        )
        self.retry_after = retry_after


class MalformedEventError(Exception):
    """Raised by the change-feed indexer for events that can never be applied."""
