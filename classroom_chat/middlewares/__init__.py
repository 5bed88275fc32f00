from .auth_middleware import get_current_identity, require_admin
from .error_handler import (
    ErrorResponse,
    custom_exception_handler,
    validation_exception_handler,
    register_exception_handlers
)
from .logging_middleware import LoggingMiddleware

__all__ = [
    # Auth
    "get_current_identity",
    "require_admin",

    # Error handling
    "ErrorResponse",
    "custom_exception_handler",
    "validation_exception_handler",
    "register_exception_handlers",

    # Logging
    "LoggingMiddleware",
]
