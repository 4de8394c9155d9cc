"""Sidequest data access."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from ascendant.database.models import Sidequest
from ascendant.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class SidequestRepository(BaseRepository[Sidequest]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Sidequest, logger)

    async def find_for_user(
        self, session: AsyncSession, user_id: int, status: Optional[str] = None
    ) -> List[Sidequest]:
        """Newest first."""
        conditions = [Sidequest.user_id == user_id]
        if status is not None:
            conditions.append(Sidequest.status == status)
        return await self.find_many_where(
            session, *conditions, order_by=[Sidequest.created_at.desc(), Sidequest.id.desc()]
        )

    async def find_owned(
        self, session: AsyncSession, user_id: int, sidequest_id: int
    ) -> Optional[Sidequest]:
        return await self.find_one_where(
            session,
            Sidequest.id == sidequest_id,
            Sidequest.user_id == user_id,
            for_update=True,
        )
