"""
Custom Exception Classes for the Dinner Club admin API.

This module defines exception classes for different error categories:
- Lookup Errors (missing dinners, members, assignments, waitlist entries)
- Business Rule Errors (capacity, credits, duplicates, bad input)
- Technical Errors (database, notifications)
- Access Errors (authentication)

Each exception carries a technical message for logging and a user message
that is safe to return to the admin UI.
"""

from typing import Optional, Any, Dict


class DinnerClubError(Exception):
    """Base exception for all dinner club errors."""

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        """
        Initialize dinner club error.

        Args:
            message: Technical error message for logging
            user_message: Human-readable message for the API response
            context: Additional context for logging
            recoverable: Whether the caller can fix the request and retry
        """
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.context = context or {}
        self.recoverable = recoverable


# ============================================================================
# Lookup Errors
# ============================================================================

class NotFoundError(DinnerClubError):
    """Raised when a referenced row does not exist."""

    def __init__(self, resource: str, resource_id: Any, **kwargs):
        """
        Initialize not-found error.

        Args:
            resource: Human-readable resource name (e.g. "Event")
            resource_id: Identifier that failed to resolve
            **kwargs: Additional context
        """
        message = f"{resource} {resource_id} not found"
        super().__init__(
            message,
            user_message=f"{resource} not found",
            context={"resource": resource, "resource_id": resource_id, **kwargs},
        )
        self.resource = resource
        self.resource_id = resource_id


class DinnerNotFoundError(NotFoundError):
    """Raised when a dinner id does not resolve."""

    def __init__(self, dinner_id: Any, **kwargs):
        super().__init__("Event", dinner_id, **kwargs)


class MemberNotFoundError(NotFoundError):
    """Raised when a member id does not resolve."""

    def __init__(self, member_id: Any, **kwargs):
        super().__init__("Member", member_id, **kwargs)


class AssignmentNotFoundError(NotFoundError):
    """Raised when an assignment id does not resolve."""

    def __init__(self, assignment_id: Any, **kwargs):
        super().__init__("Assignment", assignment_id, **kwargs)


class WaitlistEntryNotFoundError(NotFoundError):
    """Raised when a waitlist entry id does not resolve."""

    def __init__(self, entry_id: Any, **kwargs):
        super().__init__("Waitlist entry", entry_id, **kwargs)


# ============================================================================
# Business Rule Errors
# ============================================================================

class ValidationError(DinnerClubError):
    """
    Raised when a request is missing required fields or carries bad values.

    Examples:
    - Missing event or member id
    - Waitlist join with neither a member nor a guest email
    - Reducing seats below the current number of assignments
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        """
        Initialize validation error.

        Args:
            message: Human-readable description of the problem
            field: Field that failed validation
            value: Invalid value
            **kwargs: Additional context
        """
        context = {"field": field, "value": value, **kwargs}
        super().__init__(message, context=context, recoverable=True)
        self.field = field
        self.value = value


class CapacityExceededError(DinnerClubError):
    """Raised when an assignment would push a dinner past its seat count."""

    def __init__(self, dinner_id: int, seats: int, current_assignments: int, **kwargs):
        """
        Initialize capacity exceeded error.

        Args:
            dinner_id: Dinner that is full
            seats: Declared seat count
            current_assignments: Assignments already present
            **kwargs: Additional context
        """
        message = f"Event is at capacity ({seats} seats)"
        context = {
            "dinner_id": dinner_id,
            "seats": seats,
            "current_assignments": current_assignments,
            **kwargs
        }
        super().__init__(message, context=context, recoverable=True)
        self.dinner_id = dinner_id
        self.seats = seats
        self.current_assignments = current_assignments


class InsufficientCreditError(DinnerClubError):
    """Raised when a member without a subscription has no credits left."""

    def __init__(self, member_id: int, credit_balance: int = 0, **kwargs):
        message = f"Member {member_id} has no credits and no active subscription"
        super().__init__(
            message,
            user_message="Member has no credits remaining",
            context={"member_id": member_id, "credit_balance": credit_balance, **kwargs},
        )
        self.member_id = member_id
        self.credit_balance = credit_balance


class DuplicateAssignmentError(DinnerClubError):
    """Raised when a member or guest email is already assigned to the dinner."""

    def __init__(self, dinner_id: int, member_id: Optional[int] = None, guest_email: Optional[str] = None, **kwargs):
        if member_id is not None:
            message = f"Member {member_id} is already assigned to event {dinner_id}"
            user_message = "Member is already assigned to this event"
        else:
            message = f"Guest {guest_email} is already assigned to event {dinner_id}"
            user_message = "Guest is already assigned to this event"
        super().__init__(
            message,
            user_message=user_message,
            context={"dinner_id": dinner_id, "member_id": member_id, "guest_email": guest_email, **kwargs},
        )
        self.dinner_id = dinner_id
        self.member_id = member_id
        self.guest_email = guest_email


class DuplicateWaitlistEntryError(DinnerClubError):
    """Raised when a member or guest is already on the dinner's waitlist."""

    def __init__(self, dinner_id: int, who: Any, **kwargs):
        message = f"{who} is already on the waitlist for event {dinner_id}"
        super().__init__(
            message,
            user_message="Already on the waitlist for this event",
            context={"dinner_id": dinner_id, "who": who, **kwargs},
        )
        self.dinner_id = dinner_id


# ============================================================================
# Access Errors
# ============================================================================

class AuthenticationError(DinnerClubError):
    """Raised when a request carries no valid admin credentials."""

    def __init__(self, message: str = "Unauthorized", user_message: str = "Unauthorized", **kwargs):
        super().__init__(message, user_message=user_message, context=kwargs)


# ============================================================================
# Technical Errors - Database
# ============================================================================

class DatabaseError(DinnerClubError):
    """
    Raised when database operations fail.

    Examples:
    - Connection errors
    - Query failures
    - Constraint violations
    """

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        error_type: str = "unknown",
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
        **kwargs
    ):
        """
        Initialize database error.

        Args:
            message: Error message (logged, never returned to the caller)
            user_message: Generic message for the API response
            error_type: Type of error (connection, query, constraint)
            operation: Name of the failed operation
            original_error: Original exception
            **kwargs: Additional context
        """
        context = {
            "error_type": error_type,
            "operation": operation,
            "original_error": str(original_error) if original_error else None,
            **kwargs
        }
        super().__init__(
            message,
            user_message=user_message or "Internal server error",
            context=context,
            recoverable=False,
        )
        self.error_type = error_type
        self.operation = operation
        self.original_error = original_error


class DatabaseConnectionError(DatabaseError):
    """Raised when the database connection fails."""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message=message, error_type="connection", **kwargs)


class DatabaseQueryError(DatabaseError):
    """Raised when a database query fails."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_type="query", **kwargs)


# ============================================================================
# Technical Errors - Notifications
# ============================================================================

class NotificationError(DinnerClubError):
    """
    Raised when notification dispatch fails.

    Notifications are non-critical: callers log this and carry on.
    """

    def __init__(
        self,
        message: str,
        channel: str = "log",
        recipient: Optional[str] = None,
        original_error: Optional[Exception] = None,
        **kwargs
    ):
        context = {
            "channel": channel,
            "recipient": recipient,
            "original_error": str(original_error) if original_error else None,
            **kwargs
        }
        super().__init__(message, context=context, recoverable=True)
        self.channel = channel
        self.recipient = recipient
        self.original_error = original_error
