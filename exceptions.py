"""Errors raised by the booking engine.

Each carries a short, user-facing ``message``; the HTTP layer maps the
class to a status code and returns the message as-is (except for
DataAccessError, which is logged and replaced by a generic message).
"""

from typing import Optional


class BookingError(Exception):
    """Base class for every error the engine surfaces to callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Structurally invalid input (missing field, bad duration, off-hours)."""


class NotFound(BookingError):
    """A referenced court, coach, equipment item, rule or booking does not exist."""

    def __init__(self, kind: str, identifier):
        super().__init__(f"{kind.capitalize()} {identifier} not found.")
        self.kind = kind
        self.identifier = identifier


class ConflictError(BookingError):
    """The requested resource cannot be reserved for that interval."""

    def __init__(self, resource: str, message: str, remaining: Optional[int] = None):
        super().__init__(message)
        self.resource = resource
        self.remaining = remaining


class DataAccessError(BookingError):
    """The store was unreachable or the transaction was aborted."""
