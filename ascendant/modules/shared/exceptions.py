"""
Domain exceptions for Ascendant.

Purpose
-------
Define the structured exception hierarchy for progression logic. Services
raise these for business rule violations, missing entities, concurrency
conflicts and collaborator failures. The transport layer above the services
translates them into user-facing messages.

Design Notes
------------
- All domain exceptions inherit from `AscendantError`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the whole operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Expected domain outcomes (penalty applied, tracker deleted, upgrade not
  yet available) are results, not exceptions.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class AscendantError(Exception):
    """
    Base exception for all Ascendant domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise AscendantError(
        ...     "Upgrade failed",
        ...     {"tracker_id": 7}
        ... )
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


class ValidationError(AscendantError):
    """
    Raised when input or generator output fails validation.

    Always raised before any mutation: malformed client input, out-of-range
    values, or content-generator output that does not match the schema.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(AscendantError):
    """
    Raised when a requested entity cannot be found.

    Covers users, trackers, quests and missions, and a quest that is not in
    today's remaining set (double submit or stale client state).

    Args:
        resource_type: Type of resource (e.g., "Tracker", "Quest")
        identifier: Optional identifier for the missing resource
        reason: Optional extra explanation
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(
        self,
        resource_type: str,
        identifier: Optional[Any] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        self.reason = reason

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"
        if reason:
            message = f"{message} ({reason})"

        details: Dict[str, Any] = {
            "resource_type": resource_type,
            "identifier": identifier,
        }
        if reason:
            details["reason"] = reason

        super().__init__(
            message,
            details=details,
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class InvalidOperationError(AscendantError):
    """
    Raised when an action violates a lifecycle rule.

    Examples: joining a mission twice, completing a quest on a finished
    tracker, deleting another user's mission.

    Args:
        action: Description of the invalid action
        reason: Explanation of why it's not allowed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={
                "action": action,
                "reason": reason,
            },
            error_code=f"INVALID_{action.upper()}",
        )


class StateConflictError(AscendantError):
    """
    Raised when a concurrent modification is detected.

    The Tracker+User unit was changed underneath the operation (stale
    version) or its lock could not be acquired in time. Nothing was
    written; the caller should retry the whole operation.

    Args:
        resource_type: Type of the contended resource
        identifier: Identifier of the contended resource
        reason: What was detected
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, resource_type: str, identifier: Any, reason: str) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        self.reason = reason
        super().__init__(
            f"Concurrent modification of {resource_type} {identifier}: {reason}",
            details={
                "resource_type": resource_type,
                "identifier": identifier,
                "reason": reason,
            },
            error_code="STATE_CONFLICT",
        )


class PersistenceError(AscendantError):
    """
    Raised when the durable store fails mid-operation.

    The enclosing transaction has been rolled back in full.

    Args:
        operation: Name of the failed persistence step
        reason: Underlying failure description
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Persistence failure during {operation}: {reason}",
            details={"operation": operation, "reason": reason},
            error_code="PERSISTENCE_FAILURE",
        )


class ExternalServiceError(AscendantError):
    """
    Raised when the content generator fails or times out.

    Aborts the enclosing operation (mission generation or upgrade) with no
    state change.

    Args:
        service: Name of the external collaborator
        reason: Failure description
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, service: str, reason: str) -> None:
        self.service = service
        self.reason = reason
        super().__init__(
            f"{service} failed: {reason}",
            details={"service": service, "reason": reason},
            error_code=f"{service.upper()}_UNAVAILABLE",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: BaseException) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, AscendantError):
        return exc.is_retryable
    return False


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """Get the severity level of an exception for logging."""
    if isinstance(exc, AscendantError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    """True if severity is ERROR or CRITICAL."""
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
