"""
Base Repository Pattern

Purpose
-------
Type-safe, generic data-access base following SQLAlchemy 2.0 async
conventions. Repositories encapsulate queries so services only deal with
model instances and sessions handed to them by DatabaseService.

Design Notes
------------
- Row locks via SELECT ... FOR UPDATE where the backend supports them
  (SQLAlchemy omits the clause on SQLite, where the per-tracker lock
  manager and version columns carry serialization instead).
- Structured DEBUG logging for every query.
- No transaction management and no business rules.

Usage
-----
    class TrackerRepository(BaseRepository[Tracker]):
        async def find_for_user(self, session, user_id):
            return await self.find_many_where(session, Tracker.user_id == user_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic repository over one mapped model class.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    @property
    def _model_name(self) -> str:
        return self.model_class.__name__

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Fetch by primary key without locking."""
        stmt = select(self.model_class).where(self.model_class.id == id_value)  # type: ignore[attr-defined]
        instance = (await session.execute(stmt)).scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self._model_name}",
            extra={"model": self._model_name, "id": id_value, "found": instance is not None},
        )
        return instance

    async def get_for_update(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Fetch by primary key with SELECT FOR UPDATE."""
        stmt = (
            select(self.model_class)
            .where(self.model_class.id == id_value)  # type: ignore[attr-defined]
            .with_for_update()
        )
        instance = (await session.execute(stmt)).scalar_one_or_none()

        self.log.debug(
            f"Repository.get_for_update: {self._model_name}",
            extra={
                "model": self._model_name,
                "id": id_value,
                "found": instance is not None,
                "locked": True,
            },
        )
        return instance

    async def get_many(self, session: AsyncSession, id_values: Sequence[Any]) -> List[T]:
        """Fetch several rows by primary key; missing ids are skipped."""
        if not id_values:
            return []
        stmt = select(self.model_class).where(self.model_class.id.in_(list(id_values)))  # type: ignore[attr-defined]
        instances = list((await session.execute(stmt)).scalars().all())

        self.log.debug(
            f"Repository.get_many: {self._model_name}",
            extra={
                "model": self._model_name,
                "requested_count": len(id_values),
                "found_count": len(instances),
            },
        )
        return instances

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        instance = (await session.execute(stmt)).scalars().first()

        self.log.debug(
            f"Repository.find_one_where: {self._model_name}",
            extra={"model": self._model_name, "found": instance is not None, "locked": for_update},
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        for_update: bool = False,
    ) -> List[T]:
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if for_update:
            stmt = stmt.with_for_update()

        instances = list((await session.execute(stmt)).scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._model_name}",
            extra={
                "model": self._model_name,
                "found_count": len(instances),
                "limit": limit,
                "locked": for_update,
            },
        )
        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        total = (await session.execute(stmt)).scalar_one()

        self.log.debug(
            f"Repository.count: {self._model_name}",
            extra={"model": self._model_name, "count": total},
        )
        return total

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def add(self, session: AsyncSession, instance: T) -> T:
        """Add and flush so the primary key is populated."""
        session.add(instance)
        await session.flush()

        self.log.debug(
            f"Repository.add: {self._model_name}",
            extra={"model": self._model_name, "id": getattr(instance, "id", None)},
        )
        return instance

    async def add_many(self, session: AsyncSession, instances: Sequence[T]) -> List[T]:
        session.add_all(instances)
        await session.flush()

        self.log.debug(
            f"Repository.add_many: {self._model_name}",
            extra={"model": self._model_name, "count": len(instances)},
        )
        return list(instances)

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        await session.flush()

        self.log.debug(
            f"Repository.delete: {self._model_name}",
            extra={"model": self._model_name, "id": getattr(instance, "id", None)},
        )
