"""
Ascendant Logging Infrastructure

Exports the console logging setup and the write-path log context:
- JSON logging for production, readable console output for development
- ContextVar-based contextual fields (`log_context`)
- Setup and teardown helpers driven by the service container
"""

from ascendant.core.logging.logger import (
    current_log_context,
    get_logger,
    is_logging_configured,
    log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "is_logging_configured",
    "get_logger",
    "log_context",
    "current_log_context",
]
