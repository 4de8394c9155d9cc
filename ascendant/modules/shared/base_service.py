"""
Base Service Foundation

Purpose
-------
Provides the foundational class for all domain services in Ascendant.
Services implement business rules, own their transaction scopes, and emit
domain events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers
- Input validation helpers that raise domain ValidationError

What this class does NOT do:
- Open database transactions (DatabaseService does)
- Contain game-specific logic

Usage
-----
    class PenaltyService(BaseService):
        def __init__(self, config_manager, event_bus, logger, *, database, ...):
            super().__init__(config_manager, event_bus, logger)
            self._db = database
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from ascendant.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Balance configuration store
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        from ascendant.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Emit a domain event for cross-module communication."""
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    @staticmethod
    def validate_positive_int(value: Any, name: str) -> int:
        """
        Validate that a value is a positive integer.

        Raises:
            ValidationError: If value is not a positive int
        """
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value!r}")
        return value

    @staticmethod
    def validate_range(value: Any, name: str, min_val: int, max_val: int) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(name, f"{name} must be an integer, got {value!r}")
        if not (min_val <= value <= max_val):
            raise ValidationError(
                name, f"{name} must be between {min_val} and {max_val}, got {value}"
            )
        return value
