"""
Error handling module for the dinner club admin API.

This module provides the error handling infrastructure:
- Custom exception hierarchy for lookup, business rule and storage errors
- Transaction decorator translating SQLAlchemy failures
- Logging utilities and audit trail helpers

Main Components:
    - exceptions: Custom exception classes for all error scenarios
    - handlers: Decorators for transactional service methods
    - logging_config: loguru sinks and audit loggers
"""

from .exceptions import (
    # Base exception
    DinnerClubError,

    # Lookup errors
    NotFoundError,
    DinnerNotFoundError,
    MemberNotFoundError,
    AssignmentNotFoundError,
    WaitlistEntryNotFoundError,

    # Business rule errors
    ValidationError,
    CapacityExceededError,
    InsufficientCreditError,
    DuplicateAssignmentError,
    DuplicateWaitlistEntryError,

    # Access errors
    AuthenticationError,

    # Database errors
    DatabaseError,
    DatabaseConnectionError,
    DatabaseQueryError,

    # Notification errors
    NotificationError,
)

from .handlers import (
    transactional,
    log_function_call,
)

from .logging_config import (
    configure_logging,
    init_logging,
    log_ledger_event,
    log_waitlist_event,
    log_error_with_context,
)

__all__ = [
    # Exceptions
    "DinnerClubError",
    "NotFoundError",
    "DinnerNotFoundError",
    "MemberNotFoundError",
    "AssignmentNotFoundError",
    "WaitlistEntryNotFoundError",
    "ValidationError",
    "CapacityExceededError",
    "InsufficientCreditError",
    "DuplicateAssignmentError",
    "DuplicateWaitlistEntryError",
    "AuthenticationError",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    "NotificationError",

    # Handlers
    "transactional",
    "log_function_call",

    # Logging
    "configure_logging",
    "init_logging",
    "log_ledger_event",
    "log_waitlist_event",
    "log_error_with_context",
]
