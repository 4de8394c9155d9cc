"""
Ascendant Logging Subsystem

Purpose
-------
One console handler on the root logger, JSON in production and readable
text elsewhere, plus ambient context for the write path.

Every record that reaches the handler is enriched with the `user_id`,
`tracker_id` and `operation` bound by `log_context()`. `WriteGuard` binds
them around each guarded write, so lock, retry and transaction logs carry
the operation that caused them without each call site passing `extra`.

Lifecycle
---------
`ServiceContainer.initialize()` calls `setup_logging()` and `shutdown()`
calls `shutdown_logging()`. Both are idempotent.

Dependencies
------------
- ascendant.core.config.config.Config (LOG_LEVEL, LOG_JSON, ENVIRONMENT)
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import Logger
from typing import Any, Dict, Iterator, Optional

from ascendant.core.config.config import Config

CONTEXT_FIELDS = ("user_id", "tracker_id", "operation")

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(operation)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})
_handler: Optional[logging.Handler] = None


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        # Explicit extra={...} values win over ambient context
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, context.get(field, "N/A"))
        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        prefix = self.COLORS.get(original)
        if prefix:
            record.levelname = f"{prefix}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    # Attributes every LogRecord has; anything else came in through extra={...}
    RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, "N/A")
            if value != "N/A":
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


def _use_json() -> bool:
    if Config.LOG_JSON is None:
        return Config.is_production()
    return bool(Config.LOG_JSON)


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if _use_json():
        handler.setFormatter(JSONFormatter())
    elif sys.stdout.isatty():
        handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(ContextFilter())
    return handler


def setup_logging() -> None:
    global _handler

    if _handler is not None:
        return

    root = logging.getLogger()
    root.setLevel(getattr(logging, Config.LOG_LEVEL, logging.INFO))

    _handler = _build_console_handler()
    root.addHandler(_handler)

    for noisy in ("sqlalchemy.engine", "aiosqlite", "asyncio", "httpx", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging initialized",
        extra={"log_level": Config.LOG_LEVEL, "json": _use_json()},
    )


def shutdown_logging() -> None:
    global _handler

    if _handler is None:
        return

    _handler.flush()
    logging.getLogger().removeHandler(_handler)
    _handler.close()
    _handler = None


def is_logging_configured() -> bool:
    return _handler is not None


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """
    Bind context fields to every record logged inside the block.

    Nested blocks inherit the outer fields and may override them.

    >>> with log_context(user_id=42, operation="tracker.complete_quest"):
    ...     logger.info("quest completed")
    """
    bound = {**_log_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _log_context.set(bound)
    try:
        yield bound
    finally:
        _log_context.reset(token)


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())
