"""Leaderboard: users ranked by one progression column."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.database.service import DatabaseService
    from ascendant.core.event.bus import EventBus

SORT_COLUMNS = ("xp", "level", "coins", "total_missions")


class LeaderboardService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        database: DatabaseService,
        users: UserRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._db = database
        self._users = users

    async def get_leaderboard(
        self, limit: Optional[int] = None, sort_by: str = "xp"
    ) -> List[Dict[str, Any]]:
        """
        Top users, descending by `sort_by`.

        An unknown sort key falls back to xp. `limit` is clamped to
        [1, leaderboard.max_limit].
        """
        max_limit = int(self.get_config("leaderboard.max_limit", 100))
        if limit is None:
            limit = int(self.get_config("leaderboard.default_limit", 20))
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = int(self.get_config("leaderboard.default_limit", 20))
        limit = max(1, min(max_limit, limit))

        if sort_by not in SORT_COLUMNS:
            self.log.debug("Unknown leaderboard sort key, using xp", extra={"sort_by": sort_by})
            sort_by = "xp"

        async with self._db.session() as session:
            users = await self._users.top_by(session, sort_by, limit)

        return [
            {
                "position": position,
                "user_id": user.id,
                "username": user.username,
                "level": user.level,
                "xp": user.xp,
                "coins": user.coins,
                "rank": user.rank,
                "total_missions": user.total_missions,
                "active_title": user.active_title,
            }
            for position, user in enumerate(users, start=1)
        ]
