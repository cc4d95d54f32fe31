"""
Typed failures for shift operations.

Every error carries the offending field and/or shift id so the caller can
render an actionable message. Routes map them to HTTP statuses via
status_code; nothing here is ever swallowed by the service layer.
"""

from __future__ import annotations


class ShiftServiceError(Exception):
    """Base class for all caller-visible shift failures."""

    kind = "SHIFT_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str, *, field: str | None = None, session_id: int | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.session_id = session_id

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "field": self.field,
            "session_id": self.session_id,
            "retryable": self.retryable,
        }


class InvalidArgumentError(ShiftServiceError, ValueError):
    """Malformed input: negative balances, non-positive amounts, unknown types."""

    kind = "INVALID_ARGUMENT"
    status_code = 400
    retryable = True


class NotFoundError(ShiftServiceError):
    """Unknown shift id."""

    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(ShiftServiceError):
    """An open shift already exists for this operator at this location."""

    kind = "CONFLICT"
    status_code = 409
    retryable = True


class InvalidStateError(ShiftServiceError):
    """
    Shift is not in the status the operation requires (movement on a closed
    shift, double close). Not retryable: the caller's view is stale.
    """

    kind = "INVALID_STATE"
    status_code = 409


class DependencyError(ShiftServiceError):
    """An external collaborator was unreachable or returned inconsistent data."""

    kind = "DEPENDENCY_UNAVAILABLE"
    status_code = 503
    retryable = True
