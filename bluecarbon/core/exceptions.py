"""
Registry exception hierarchy.

Handlers raise these; main.py turns them into JSON error responses. Each
exception carries the HTTP status it maps to and whether the caller may
simply retry the same request.
"""

import re
from typing import Any, Dict, Optional


class RegistryError(Exception):
    """Base exception for all registry errors.

    Attributes:
        message: Human-readable error message
        error_code: Stable identifier (e.g., "NOT_FOUND")
        context: Dictionary with error-specific details
    """

    status_code = 500
    retryable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}

    def _generate_error_code(self) -> str:
        # CamelCase -> SCREAMING_SNAKE_CASE, without the "_ERROR" suffix
        name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", self.__class__.__name__).upper()
        return name[: -len("_ERROR")] if name.endswith("_ERROR") else name

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a JSON-serializable dictionary."""
        return {
            "error": self.__class__.__name__,
            "code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
        }

    def __str__(self) -> str:
        return self.message


class ValidationError(RegistryError):
    """A required field is missing or invalid; nothing was written."""

    status_code = 422


class InvalidAmount(ValidationError):
    """Credit amount outside the allowed range."""


class InvalidTransitionError(ValidationError):
    """Requested status change is not allowed from the current status."""


class AuthorizationError(RegistryError):
    """Caller lacks the capability required for the operation."""

    status_code = 403


class AuthenticationError(AuthorizationError):
    """Missing or invalid credentials."""

    status_code = 401


class NotFoundError(RegistryError):
    """Referenced entity does not exist (or is not visible to the caller)."""

    status_code = 404


class ConflictError(RegistryError):
    """A concurrent mutation won the race; reload and retry."""

    status_code = 409


class TransientIOError(RegistryError):
    """Storage or backend I/O failure; safe to retry."""

    status_code = 503
    retryable = True


def is_retryable(exc: Exception) -> bool:
    """Check whether the failed operation can be retried as-is."""
    return isinstance(exc, RegistryError) and exc.retryable
