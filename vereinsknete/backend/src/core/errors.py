"""Domain error hierarchy shared by services and the HTTP layer."""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for every failure reported by the billing domain."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class NotFound(DomainError):
    code = "NOT_FOUND"


class ValidationFailed(DomainError):
    code = "VALIDATION_ERROR"


class InvalidRange(ValidationFailed):
    """A time interval whose end is not after its start."""

    code = "INVALID_RANGE"


class IllegalTransition(DomainError):
    """A status change that the lifecycle table does not allow."""

    code = "ILLEGAL_TRANSITION"


class SessionAlreadyInvoiced(IllegalTransition):
    """The session is already linked to an invoice and may not change."""

    code = "SESSION_ALREADY_INVOICED"


class NoBillableSessions(DomainError):
    code = "NO_BILLABLE_SESSIONS"


class SequenceAllocationFailed(DomainError):
    code = "SEQUENCE_ALLOCATION_FAILED"


class ConcurrentBillingConflict(DomainError):
    code = "CONCURRENT_BILLING_CONFLICT"


__all__ = [
    "ConcurrentBillingConflict",
    "DomainError",
    "IllegalTransition",
    "InvalidRange",
    "NoBillableSessions",
    "NotFound",
    "SequenceAllocationFailed",
    "SessionAlreadyInvoiced",
    "ValidationFailed",
]
