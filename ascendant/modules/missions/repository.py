"""Mission and Quest data access."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Sequence

from ascendant.database.models import Mission, Quest
from ascendant.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class MissionRepository(BaseRepository[Mission]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Mission, logger)

    async def list_public(self, session: AsyncSession, limit: int = 50) -> List[Mission]:
        return await self.find_many_where(
            session, Mission.public.is_(True), order_by=[Mission.id.desc()], limit=limit
        )

    async def list_by_creator(self, session: AsyncSession, creator_id: int) -> List[Mission]:
        return await self.find_many_where(
            session, Mission.creator_id == creator_id, order_by=[Mission.id.desc()]
        )


class QuestRepository(BaseRepository[Quest]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Quest, logger)

    async def get_map(self, session: AsyncSession, quest_ids: Sequence[int]) -> Dict[int, Quest]:
        """Quests keyed by id; missing ids are absent from the map."""
        return {quest.id: quest for quest in await self.get_many(session, quest_ids)}

    async def get_ordered(self, session: AsyncSession, quest_ids: Sequence[int]) -> List[Quest]:
        """Quests in the order of `quest_ids`, skipping missing ids."""
        by_id = await self.get_map(session, quest_ids)
        return [by_id[quest_id] for quest_id in quest_ids if quest_id in by_id]
