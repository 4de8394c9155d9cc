"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async engine and session management for Ascendant. Provides the atomic
transaction scope every mutating operation runs in, so a Tracker and its
owning User are always written together or not at all.

Responsibilities
----------------
- Build one AsyncEngine per service instance from the configured URL
- Provide `session()` for reads and `transaction()` for writes
- Commit on success, roll back on any exception
- Translate driver failures into domain errors callers can retry:
  - StaleDataError (version_id_col mismatch) -> StateConflictError
  - IntegrityError (a racing insert won) -> StateConflictError
  - OperationalError / DBAPIError -> PersistenceError
- Schema bootstrap (`create_all` / `drop_all`) and a `SELECT 1` health check

Non-Responsibilities
--------------------
- Retrying (RetryPolicy wraps the whole operation, transaction included)
- Mutual exclusion (LockManager)
- Business rules

Usage
-----
>>> db = DatabaseService("sqlite+aiosqlite:///:memory:")
>>> await db.initialize()
>>> await db.create_all()
>>> async with db.transaction() as session:
...     user = await session.get(User, user_id)
...     user.coins += 10
...     # commit on exit

Notes
-----
- Never call `session.commit()` inside service code.
- In-memory SQLite uses a StaticPool so every session sees the same
  database; this also means sessions share one connection, so writers must
  be serialized by the lock manager (they are).
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from ascendant.core.config.config import Config
from ascendant.core.database.base import Base
from ascendant.core.exceptions import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
)
from ascendant.core.logging.logger import get_logger
from ascendant.modules.shared.exceptions import (
    AscendantError,
    PersistenceError,
    StateConflictError,
)

logger = get_logger(__name__)


class DatabaseService:
    """
    Async engine and session management.

    Public API
    ----------
    - initialize() / shutdown()
    - create_all() / drop_all()
    - session() -> read-only session, no commit
    - transaction() -> atomic write scope (preferred for mutations)
    - health_check()
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None) -> None:
        self.url = url or Config.DATABASE_URL
        self.echo = Config.DATABASE_ECHO if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._init_lock = asyncio.Lock()

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def _engine_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"echo": self.echo}
        if self.url.startswith("sqlite") and ":memory:" in self.url:
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Create the engine and session factory. Idempotent.

        Raises:
            DatabaseInitializationError: If the URL is empty or engine creation fails
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            if not self.url or not isinstance(self.url, str):
                raise DatabaseInitializationError("DATABASE_URL must be a non-empty string")

            try:
                self._engine = create_async_engine(self.url, **self._engine_kwargs())
                self._session_factory = async_sessionmaker(
                    bind=self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}",
                    details={"url_scheme": self.url_scheme},
                ) from exc

            logger.info(
                "DatabaseService initialized",
                extra={"url_scheme": self.url_scheme, "echo": self.echo},
            )

    async def shutdown(self) -> None:
        async with self._init_lock:
            if self._engine is None:
                return
            try:
                await self._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                self._engine = None
                self._session_factory = None

    async def create_all(self) -> None:
        """Create every table registered on `Base.metadata`."""
        # models must be imported so their tables are registered
        import ascendant.database.models  # noqa: F401

        engine = self._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created", extra={"tables": len(Base.metadata.tables)})

    async def drop_all(self) -> None:
        engine = self._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database schema dropped")

    async def health_check(self) -> bool:
        """`SELECT 1` against the engine. Returns False instead of raising."""
        if self._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseNotInitializedError("DatabaseService is not initialized")
        return self._engine

    def _require_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise DatabaseNotInitializedError("DatabaseService is not initialized")
        return self._session_factory

    # ========================================================================
    # Sessions
    # ========================================================================

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session without automatic commit. Use for reads."""
        factory = self._require_factory()
        async with factory() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits on clean exit. On any exception the transaction is rolled
        back in full and the error re-raised, with store-level failures
        translated into domain errors.

        Raises:
            StateConflictError: Stale version or racing insert
            PersistenceError: Driver or connection failure
            AscendantError: Any domain error raised inside the scope
        """
        factory = self._require_factory()
        start = time.perf_counter()

        async with factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except StaleDataError as exc:
                await session.rollback()
                logger.warning(
                    "Stale version in transaction; rolled back",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )
                raise StateConflictError(
                    "record", None, "modified by a concurrent operation"
                ) from exc

            except IntegrityError as exc:
                await session.rollback()
                logger.warning(
                    "Integrity violation in transaction; rolled back",
                    extra={"error": str(exc.orig), "error_type": type(exc).__name__},
                )
                raise StateConflictError(
                    "record", None, "conflicting write already committed"
                ) from exc

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    f"{type(exc).__name__} in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise PersistenceError("transaction", str(exc.orig or exc)) from exc

            except AscendantError as exc:
                await session.rollback()
                logger.info(
                    "Domain error in transaction; rolled back",
                    extra={"error_code": exc.error_code, "error_type": type(exc).__name__},
                )
                raise

            except Exception as exc:
                await session.rollback()
                logger.error(
                    "Error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise
