"""
Centralized error handling utilities for the dinner club services.

This module provides utilities for:
- Wrapping service operations in a single rollback-on-failure transaction
- Translating SQLAlchemy failures into the DatabaseError family
- Logging function calls and timings
"""
import time
import functools
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from .exceptions import (
    DinnerClubError,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseQueryError,
)
from .logging_config import log_error_with_context


def transactional(operation: str, user_message: Optional[str] = None):
    """
    Decorator for service methods that must succeed or roll back as a unit.

    The wrapped method is expected to commit on success. Any failure rolls
    back ``self.session``; domain errors are re-raised unchanged and
    SQLAlchemy errors are re-raised as ``DatabaseError`` subclasses that
    carry a generic user message.

    Args:
        operation: Operation name used in logs
        user_message: Message returned to the caller on storage failure

    Returns:
        Decorated method
    """
    public_message = user_message or f"Failed to {operation.replace('_', ' ')}"

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)

            except DinnerClubError:
                self.session.rollback()
                raise

            except IntegrityError as e:
                self.session.rollback()
                error_msg = str(e.orig) if hasattr(e, "orig") else str(e)
                log_error_with_context(e, {"operation": operation, "kind": "constraint"})
                raise DatabaseError(
                    f"Database constraint violation: {error_msg}",
                    user_message=public_message,
                    error_type="constraint",
                    operation=operation,
                    original_error=e
                ) from e

            except OperationalError as e:
                self.session.rollback()
                log_error_with_context(e, {"operation": operation, "kind": "connection"})
                raise DatabaseConnectionError(
                    f"Database operation failed: {str(e)}",
                    user_message=public_message,
                    operation=operation,
                    original_error=e
                ) from e

            except SQLAlchemyError as e:
                self.session.rollback()
                log_error_with_context(e, {"operation": operation, "kind": "query"})
                raise DatabaseQueryError(
                    f"Database query failed: {str(e)}",
                    user_message=public_message,
                    operation=operation,
                    original_error=e
                ) from e

        return wrapper
    return decorator


def log_function_call(func: Callable) -> Callable:
    """
    Decorator for logging function calls and execution time.

    Args:
        func: Function to log

    Returns:
        Decorated function with logging
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        logger.debug(f"Calling {func.__name__}")

        try:
            result = func(*args, **kwargs)
            duration = time.time() - start_time
            logger.debug(f"{func.__name__} completed in {duration:.3f}s")
            return result
        except Exception as e:
            duration = time.time() - start_time
            logger.warning(f"{func.__name__} failed after {duration:.3f}s: {type(e).__name__}: {str(e)}")
            raise

    return wrapper
