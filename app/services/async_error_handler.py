"""
Error taxonomy and database error handling for the chat services.

Services raise ``ChatServiceError`` subclasses; the application turns them
into ``{"success": false, "message": ..., "errors": ...}`` responses. Raw
SQLAlchemy and asyncpg failures are classified by ``AsyncErrorHandler`` and
surfaced with a generic message, never with driver detail.
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from functools import wraps

from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    DisconnectionError,
    TimeoutError as SQLTimeoutError,
    DataError,
)
from fastapi import status
import asyncpg

logger = logging.getLogger(__name__)


class ChatServiceError(Exception):
    """Base exception for chat operations."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, List[str]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(ChatServiceError):
    """Malformed or missing input."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, detail: str) -> "ValidationError":
        return cls(errors={field: [detail]})


class PermissionDeniedError(ChatServiceError):
    """The actor lacks rights for the requested operation."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(ChatServiceError):
    """Missing, or not visible to the actor. The two are indistinguishable."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found or access denied"


class StateError(ChatServiceError):
    """The target is in a state that forbids the operation."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Operation not allowed in the current state"


class EditWindowExpiredError(StateError):
    default_message = "Messages can only be edited within 2 minutes of sending"


class AsyncErrorHandler:
    """
    Classifies database errors into HTTP status codes and safe messages.
    """

    # Mapping of SQLAlchemy errors to HTTP status codes and messages
    ERROR_MAPPINGS = {
        IntegrityError: {
            'status_code': status.HTTP_409_CONFLICT,
            'detail': 'Data integrity constraint violation',
        },
        DisconnectionError: {
            'status_code': status.HTTP_503_SERVICE_UNAVAILABLE,
            'detail': 'Database connection lost',
        },
        SQLTimeoutError: {
            'status_code': status.HTTP_503_SERVICE_UNAVAILABLE,
            'detail': 'Database operation timed out',
        },
        OperationalError: {
            'status_code': status.HTTP_503_SERVICE_UNAVAILABLE,
            'detail': 'Database operation failed',
        },
        DataError: {
            'status_code': status.HTTP_400_BAD_REQUEST,
            'detail': 'Invalid data format',
        },
    }

    @classmethod
    def classify_error(cls, error: Exception) -> Dict[str, Any]:
        """
        Classify a database error.

        Args:
            error: The exception that occurred

        Returns:
            Dictionary with status_code and detail
        """
        for exc_type, mapping in cls.ERROR_MAPPINGS.items():
            if isinstance(error, exc_type):
                return mapping.copy()

        if isinstance(error, asyncpg.PostgresError):
            return cls._handle_postgres_error(error)

        return {
            'status_code': status.HTTP_500_INTERNAL_SERVER_ERROR,
            'detail': 'An unexpected database error occurred',
        }

    @classmethod
    def _handle_postgres_error(cls, error: asyncpg.PostgresError) -> Dict[str, Any]:
        """Classify errors raised by asyncpg directly."""
        if isinstance(error, (asyncpg.ConnectionDoesNotExistError,
                              asyncpg.ConnectionFailureError)):
            return {
                'status_code': status.HTTP_503_SERVICE_UNAVAILABLE,
                'detail': 'Database connection failed',
            }

        if isinstance(error, (asyncpg.UniqueViolationError, asyncpg.ForeignKeyViolationError)):
            return {
                'status_code': status.HTTP_409_CONFLICT,
                'detail': 'Data integrity constraint violation',
            }

        return {
            'status_code': status.HTTP_500_INTERNAL_SERVER_ERROR,
            'detail': 'An unexpected database error occurred',
        }

    @classmethod
    def handle_error(cls, error: Exception, operation_name: str = "database operation") -> ChatServiceError:
        """
        Log a database error and convert it to a ChatServiceError.

        Args:
            error: The exception that occurred
            operation_name: Name of the operation for logging

        Returns:
            ChatServiceError carrying the classified status code
        """
        error_info = cls.classify_error(error)

        if error_info['status_code'] >= 500:
            logger.error(f"Database error in {operation_name}: {error}", exc_info=error)
        else:
            logger.warning(f"Database error in {operation_name}: {error}")

        converted = ChatServiceError(error_info['detail'])
        converted.status_code = error_info['status_code']
        return converted


def handle_async_db_errors(operation_name: str = "database operation"):
    """
    Decorator that converts raw database failures into ChatServiceError.

    Domain errors raised by the wrapped coroutine pass through untouched.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (SQLAlchemyError, asyncpg.PostgresError) as e:
                raise AsyncErrorHandler.handle_error(e, operation_name) from e
        return wrapper
    return decorator
