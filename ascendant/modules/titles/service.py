"""
Titles
======

Cosmetic titles unlocked by progression milestones.

Operations
----------
- list_titles(user_id): visible catalog entries, each marked unlocked when
  the user owns it or currently meets its requirements
- unlock_eligible_titles(user_id): grant every title whose requirements
  are met and the user does not own yet
- equip_title(user_id, name): move an owned title to the front of the
  user's list and make it the active title
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.progression.service import load_user
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.exceptions import InvalidOperationError, ValidationError
from ascendant.modules.shared.guard import WriteGuard, user_lock
from ascendant.modules.titles.catalog import (
    HunterRecord,
    TitleDefinition,
    is_eligible,
    load_catalog,
)
from ascendant.modules.tracker.repository import TrackerRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus
    from ascendant.database.models import User


class TitleService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        guard: WriteGuard,
        users: UserRepository,
        trackers: TrackerRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._users = users
        self._trackers = trackers

    def catalog(self) -> List[TitleDefinition]:
        return load_catalog(self.get_config("titles.catalog", []))

    async def _record(self, session: AsyncSession, user: User) -> HunterRecord:
        trackers = await self._trackers.find_for_user(session, user.id)
        return HunterRecord(
            level=user.level,
            coins=user.coins,
            rank=user.rank,
            missions_completed=len(user.completed_tracker_ids or []),
            best_streak=max((tracker.streak for tracker in trackers), default=0),
            stats=dict(user.stats or {}),
        )

    async def list_titles(self, user_id: int) -> List[Dict[str, Any]]:
        async with self._guard.database.session() as session:
            user = await load_user(self._users, session, user_id)
            record = await self._record(session, user)
            owned = set(user.titles or [])

            return [
                {
                    "name": title.name,
                    "tier": title.tier,
                    "group": title.group,
                    "flavor": title.flavor,
                    "requirements": [req.model_dump(exclude_none=True) for req in title.requirements],
                    "unlocked": title.name in owned or is_eligible(title, record),
                }
                for title in self.catalog()
                if not title.hidden
            ]

    async def unlock_eligible_titles(self, user_id: int) -> Dict[str, Any]:
        """
        Returns:
            {unlocked: [newly granted names], titles: [all owned names]}
        """
        catalog = self.catalog()

        async def work(session: AsyncSession) -> Dict[str, Any]:
            user = await load_user(self._users, session, user_id, for_update=True)
            record = await self._record(session, user)
            titles = list(user.titles or [])

            added = [
                title.name
                for title in catalog
                if title.name not in titles and is_eligible(title, record)
            ]
            if added:
                user.titles = titles + added
            return {"unlocked": added, "titles": list(user.titles or [])}

        result = await self._guard.run(
            "titles.unlock", [user_lock(user_id)], work, context={"user_id": user_id}
        )
        if result["unlocked"]:
            self.log_operation("unlock_eligible_titles", user_id=user_id, unlocked=result["unlocked"])
            for name in result["unlocked"]:
                await self.emit_event("title.unlocked", {"user_id": user_id, "title": name})
        return result

    async def equip_title(self, user_id: int, name: str) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: Blank name
            InvalidOperationError: Title not unlocked
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name", "title name is required")

        async def work(session: AsyncSession) -> Dict[str, Any]:
            user = await load_user(self._users, session, user_id, for_update=True)
            titles = list(user.titles or [])
            if name not in titles:
                raise InvalidOperationError("equip_title", f"title '{name}' is not unlocked")
            user.titles = [name] + [title for title in titles if title != name]
            user.active_title = name
            return {"active_title": name, "titles": list(user.titles)}

        result = await self._guard.run(
            "titles.equip", [user_lock(user_id)], work, context={"user_id": user_id}
        )
        self.log_operation("equip_title", user_id=user_id, title=name)
        return result
