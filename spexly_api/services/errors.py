"""Application error taxonomy.

``AppError`` subclasses carry messages that are safe to show to callers.
Anything else is logged with context and collapsed to a generic message
before it crosses the HTTP boundary.
"""

import json
import logging

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."

_SAFE_MESSAGES = (
    "Not authenticated",
    "Authentication required",
    "Session expired",
    "Invalid credentials",
)


class AppError(Exception):
    def __init__(self, message: str, code: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class ValidationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR", 400)


class DatabaseError(AppError):
    def __init__(self, message: str, original_error: BaseException | None = None):
        super().__init__(message, "DATABASE_ERROR", 500)
        self.original_error = original_error


class AuthenticationError(AppError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, "AUTH_ERROR", 401)


class InvalidSignatureError(AuthenticationError):
    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)
        self.code = "INVALID_SIGNATURE"


class StaleTimestampError(AuthenticationError):
    def __init__(self, message: str = "Stale or invalid timestamp"):
        super().__init__(message)
        self.code = "STALE_TIMESTAMP"


class AuthorizationError(AppError):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message, "AUTHORIZATION_ERROR", 403)


class RateLimitError(AppError):
    def __init__(self, message: str = "Too many requests. Please try again later."):
        super().__init__(message, "RATE_LIMIT_ERROR", 429)


class NotFoundError(AppError):
    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found", "NOT_FOUND", 404)


def _serialize_error(error: object) -> str:
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, str):
        return error
    try:
        return json.dumps(error, default=str)
    except (TypeError, ValueError):
        return repr(error)


def log_error(error: object, **context: object) -> None:
    """Log an error server-side together with its request context."""
    exc_info = error if isinstance(error, BaseException) else None
    logger.error("Error occurred: %s context=%s", _serialize_error(error), context, exc_info=exc_info)


def format_error_for_client(error: object) -> str:
    if isinstance(error, AppError):
        return error.message
    if isinstance(error, Exception):
        message = str(error)
        if any(safe in message for safe in _SAFE_MESSAGES):
            return message
    return GENERIC_ERROR_MESSAGE
