"""
Retry Policy - Infrastructure Resilience

Purpose
-------
Re-run an async operation when it fails with a retryable error, using
exponential backoff with jitter.

Retry Classification
--------------------
- Retryable: any `AscendantError` with `is_retryable=True`
  (StateConflictError, PersistenceError, ExternalServiceError) and raw
  OperationalError / DBAPIError that escaped translation.
- Everything else fails immediately.

Backoff
-------
min(initial * 2^(attempt-1), max) + random(0, jitter)

Transaction Ownership
---------------------
Wrap the operation that *opens* the transaction, never code running inside
one:

>>> async def operation():
...     async with locks.hold(f"tracker:{tracker_id}"):
...         async with db.transaction() as session:
...             ...
>>> await retry_policy.execute(operation, operation_name="tracker.complete_quest")
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from ascendant.core.config.config import Config
from ascendant.core.logging.logger import get_logger
from ascendant.modules.shared.exceptions import is_transient_error

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Attributes:
        max_attempts: Attempts including the first one
        initial_backoff_ms: Backoff before the second attempt
        max_backoff_ms: Upper bound on backoff before jitter
        jitter_ms: Maximum random jitter added to each backoff
    """

    max_attempts: int = 3
    initial_backoff_ms: int = 50
    max_backoff_ms: int = 1000
    jitter_ms: int = 50
    retriable_exceptions: Tuple[Type[BaseException], ...] = (OperationalError, DBAPIError)

    @classmethod
    def from_config(cls) -> RetryConfig:
        return cls(
            max_attempts=int(Config.RETRY_MAX_ATTEMPTS),
            initial_backoff_ms=int(Config.RETRY_INITIAL_BACKOFF_MS),
            max_backoff_ms=int(Config.RETRY_MAX_BACKOFF_MS),
            jitter_ms=int(Config.RETRY_JITTER_MS),
        )


class RetryPolicy:
    """Execute async operations with retry semantics."""

    def __init__(self, config: Optional[RetryConfig] = None) -> None:
        self._config = config or RetryConfig()

    @classmethod
    def from_config(cls) -> RetryPolicy:
        return cls(RetryConfig.from_config())

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def is_retriable(self, exc: BaseException) -> bool:
        return is_transient_error(exc) or isinstance(exc, self._config.retriable_exceptions)

    def compute_backoff_ms(self, attempt: int) -> int:
        exponent = max(attempt - 1, 0)
        capped = min(self._config.initial_backoff_ms * (2**exponent), self._config.max_backoff_ms)
        jitter = random.randint(0, self._config.jitter_ms) if self._config.jitter_ms > 0 else 0
        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        """
        Run `operation`, retrying retryable failures up to `max_attempts`.

        Raises:
            BaseException: The last error once retries are exhausted, or the
                first non-retryable error
        """
        ctx_extra = dict(context or {})
        ctx_extra["operation"] = operation_name
        attempt = 0

        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                retriable = self.is_retriable(exc)
                will_retry = retriable and attempt < self._config.max_attempts

                if not will_retry:
                    if retriable:
                        logger.error(
                            "Operation retries exhausted",
                            extra={
                                **ctx_extra,
                                "attempt": attempt,
                                "error_type": type(exc).__name__,
                                "max_attempts": self._config.max_attempts,
                            },
                        )
                    raise

                backoff_ms = self.compute_backoff_ms(attempt)
                logger.warning(
                    "Operation failed; retrying",
                    extra={
                        **ctx_extra,
                        "attempt": attempt,
                        "error_type": type(exc).__name__,
                        "backoff_ms": backoff_ms,
                    },
                )
                await asyncio.sleep(backoff_ms / 1000.0)
