"""
Infrastructure exceptions for Ascendant.

Purpose
-------
Define the exception types for infrastructure-level concerns: configuration
and database lifecycle problems that indicate a wiring or deployment error
rather than a game rule violation.

Design Notes
------------
- Domain errors (validation, not-found, conflicts, persistence failures seen
  by callers) live in `ascendant.modules.shared.exceptions`.
- These share the `ErrorSeverity` vocabulary so handlers can treat both
  families uniformly.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ascendant.modules.shared.exceptions import ErrorSeverity


class AscendantInfrastructureException(Exception):
    """
    Base exception for infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
    ) -> None:
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.severity = severity or self.DEFAULT_SEVERITY
        super().__init__(message)

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.__class__.__name__}] {self.message}{details_str}"


class ConfigurationError(AscendantInfrastructureException):
    """Raised when a required configuration key is missing or invalid."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, reason: str) -> None:
        self.config_key = config_key
        super().__init__(reason, details={"config_key": config_key})


class DatabaseNotInitializedError(AscendantInfrastructureException):
    """Raised when database operations are attempted before initialization."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL


class DatabaseInitializationError(AscendantInfrastructureException):
    """Raised when database engine initialization fails."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
