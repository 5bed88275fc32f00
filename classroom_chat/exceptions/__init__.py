"""
Custom exceptions module for the chat service.
"""

from .custom_exceptions import (
    BaseCustomException,
    AuthenticationError,
    ForbiddenError,
    ValidationError,
    NotFoundError,
    ConflictError,
    CapacityError,
    TransientStoreError,
    MalformedEventError
)

__all__ = [
    "BaseCustomException",
    "AuthenticationError",
    "ForbiddenError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "CapacityError",
    "TransientStoreError",
    "MalformedEventError"
]
