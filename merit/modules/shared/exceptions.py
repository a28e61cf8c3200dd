"""
Domain exceptions for the Merit engine.

Purpose
-------
Structured exception hierarchy raised by services for business rule
violations. Callers (HTTP layer, CLI, tests) translate these into
user-facing responses; the engine itself never retries any of them.

Design Notes
------------
- All domain exceptions inherit from `MeritDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context
  - `severity`: `ErrorSeverity` used by logging handlers
  - `is_retryable`: whether the caller may retry as-is
  - `error_code`: short, stable identifier for programmatic use
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"  # Expected rejections (validation, not found)
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class MeritDomainException(Exception):
    """
    Base exception for all Merit domain-level errors.

    Example:
        >>> raise MeritDomainException("Ledger rejected entry", {"member_id": "m-1"})
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ValidationError(MeritDomainException):
    """
    Raised when an input or a business precondition is rejected.

    Args:
        field: Name of the offending field (or precondition)
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class IncompleteSubmissionError(MeritDomainException):
    """
    Raised when a self-rating is submitted with required criteria unmet.

    Args:
        missing: ``(criterion_id, criterion_name)`` pairs, in period order
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, missing: Sequence[Tuple[str, str]]) -> None:
        self.missing = list(missing)
        self.missing_ids = [criterion_id for criterion_id, _ in self.missing]
        names = ", ".join(name for _, name in self.missing)
        super().__init__(
            f"Required criteria not met: {names}",
            details={
                "missing_criteria": [
                    {"id": criterion_id, "name": name} for criterion_id, name in self.missing
                ]
            },
            error_code="INCOMPLETE_SUBMISSION",
        )


class InvalidStateTransitionError(MeritDomainException):
    """
    Raised when a workflow transition is attempted from a state that does
    not allow it, including when another writer changed the state first.

    Args:
        current: Status observed when the transition was refused
            (``None`` if the record vanished)
        attempted: Target status of the refused transition
        resource_type: Entity whose lifecycle was violated
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        current: Optional[str],
        attempted: str,
        resource_type: str = "SelfRating",
    ) -> None:
        self.current = current
        self.attempted = attempted
        self.resource_type = resource_type
        super().__init__(
            f"Cannot move {resource_type} from {current} to {attempted}",
            details={
                "resource_type": resource_type,
                "current": current,
                "attempted": attempted,
            },
            error_code="INVALID_STATE_TRANSITION",
        )


class NotFoundError(MeritDomainException):
    """
    Raised when a referenced entity does not exist.

    Args:
        resource_type: Type of resource (e.g., "Member", "RatingPeriod")
        identifier: Identifier of the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class PermissionDeniedError(MeritDomainException):
    """
    Raised when an actor's role or ownership does not allow an operation.

    Args:
        action: Operation that was refused
        reason: Why the actor may not perform it
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Not allowed to {action}: {reason}",
            details={"action": action, "reason": reason},
            error_code="PERMISSION_DENIED",
        )


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity for logging; unknown exceptions count as ERROR."""
    if isinstance(exc, MeritDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
