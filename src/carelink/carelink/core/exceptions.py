from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    Carries the HTTP status the boundary layer answers with.
    """

    status_code = 400

    def __init__(self, message: str, errors: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    status_code = 400


class AuthenticationError(DomainError):
    """Raised when the caller identity is missing or invalid."""

    status_code = 401


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    status_code = 404

    def __init__(self, resource: str = "Resource", message: Optional[str] = None):
        super().__init__(message or f"{resource} not found")
        self.resource = resource


class ConflictError(DomainError):
    """Raised when a state transition is not legal from the current status."""

    status_code = 409


class InvariantError(DomainError):
    """Raised when stored data breaks an invariant that should never be violated."""

    status_code = 500
