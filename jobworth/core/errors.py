from __future__ import annotations

"""Domain-specific exception hierarchy for the ranking service."""

from typing import Any

__all__ = [
    "DomainError",
    "ValidationError",
    "InvalidScoreError",
    "PermissionDeniedError",
    "NotFoundError",
    "EvaluationNotFoundError",
    "PersistenceError",
]


class DomainError(Exception):
    """Base class for errors translated into HTTP responses."""

    status_code: int = 400
    error_code: str = "domain_error"
    default_message: str = "Domain error"

    def __init__(
        self,
        message: str | None = None,
        *,
        detail: Any | None = None,
        status_code: int | None = None,
    ) -> None:
        final_message = message or self.default_message
        super().__init__(final_message)
        self.message = final_message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ValidationError(DomainError, ValueError):
    """Raised when caller-provided data is rejected."""

    error_code = "validation_error"
    default_message = "Invalid request data"
    status_code = 400


class InvalidScoreError(ValidationError):
    """Raised when a score is missing, non-numeric, or not finite."""

    error_code = "invalid_score"
    default_message = "Invalid score"


class PermissionDeniedError(DomainError):
    error_code = "permission_denied"
    status_code = 403
    default_message = "Access denied"


class NotFoundError(DomainError):
    """Base class for missing resources."""

    error_code = "not_found"
    status_code = 404
    default_message = "Resource not found"


class EvaluationNotFoundError(NotFoundError):
    error_code = "evaluation_not_found"
    default_message = "Evaluation not found"


class PersistenceError(DomainError):
    """Raised when the authoritative store rejects a read or write.

    The client-facing message stays generic; the underlying cause travels
    as ``__cause__`` and is only logged.
    """

    error_code = "persistence_error"
    status_code = 500
    default_message = "Storage unavailable, please retry later"
