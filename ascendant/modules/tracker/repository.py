"""Tracker data access."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from ascendant.database.models import Tracker, TrackerStatus
from ascendant.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class TrackerRepository(BaseRepository[Tracker]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Tracker, logger)

    async def find_for_user(
        self, session: AsyncSession, user_id: int, status: Optional[str] = None
    ) -> List[Tracker]:
        conditions = [Tracker.user_id == user_id]
        if status is not None:
            conditions.append(Tracker.status == status)
        return await self.find_many_where(session, *conditions, order_by=[Tracker.id.asc()])

    async def find_active_for_user(self, session: AsyncSession, user_id: int) -> List[Tracker]:
        return await self.find_for_user(session, user_id, TrackerStatus.ACTIVE.value)

    async def find_for_user_mission(
        self, session: AsyncSession, user_id: int, mission_id: int
    ) -> Optional[Tracker]:
        return await self.find_one_where(
            session, Tracker.user_id == user_id, Tracker.mission_id == mission_id
        )

    async def count_for_mission(self, session: AsyncSession, mission_id: int) -> int:
        return await self.count(session, Tracker.mission_id == mission_id)
