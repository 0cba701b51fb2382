"""
Domain Errors

Every error that may reach the presentation layer derives from
ExtrackError and carries a short, user-readable message.

DESIGN DECISION: "Not found" and "belongs to someone else" are the same
error with the same message, so callers cannot discover other users' data.
"""

from typing import Optional


class ExtrackError(Exception):
    """Base exception for all domain errors."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


class AuthenticationError(ExtrackError):
    """No verified user is available for the operation."""

    default_message = "User not authenticated"


class NotFoundError(ExtrackError):
    """A referenced row is missing or not owned by the caller."""

    default_message = "Not found"

    def __init__(self, entity: str = "Item", message: Optional[str] = None):
        self.entity = entity
        super().__init__(message or f"{entity} not found")


class InputValidationError(ExtrackError):
    """Input was rejected before any write happened."""

    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InsufficientFundsError(InputValidationError):
    """A withdrawal asked for more than a goal holds."""

    default_message = "Insufficient amount in goal"

    def __init__(self, available=None, requested=None):
        self.available = available
        self.requested = requested
        super().__init__(self.default_message, field="amount")
