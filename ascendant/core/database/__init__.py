"""Database infrastructure: declarative base, DatabaseService, RetryPolicy."""

from ascendant.core.database.base import Base, IdMixin, JSONType, TimestampMixin
from ascendant.core.database.retry_policy import RetryConfig, RetryPolicy
from ascendant.core.database.service import DatabaseService

__all__ = [
    "Base",
    "DatabaseService",
    "IdMixin",
    "JSONType",
    "RetryConfig",
    "RetryPolicy",
    "TimestampMixin",
]
