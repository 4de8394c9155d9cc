"""
ProgressionService
==================

Purpose
-------
Account creation and profile reads. Progression writes themselves happen in
the tracker, penalty, upgrade, ascension and sidequest services through the
ProgressionLedger.

Operations
----------
- register_user(username, email=None) -> new user at level 1, rank E,
  every stat {value: 0, level: 1}
- get_profile(user_id) -> user snapshot plus current XP thresholds
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from ascendant.database.models import Rank, User, default_stats
from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from ascendant.modules.shared.guard import WriteGuard
from ascendant.modules.shared.leveling import STAT_LEVELS, USER_LEVELS

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus

MAX_USERNAME_LENGTH = 64


def user_snapshot(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "level": user.level,
        "xp": user.xp,
        "coins": user.coins,
        "rank": user.rank,
        "stats": dict(user.stats or {}),
        "titles": list(user.titles or []),
        "active_title": user.active_title,
        "total_missions": user.total_missions,
        "completed_missions": len(user.completed_tracker_ids or []),
    }


async def load_user(
    users: UserRepository, session: AsyncSession, user_id: int, *, for_update: bool = False
) -> User:
    """
    Raises:
        NotFoundError: If the user does not exist
    """
    if for_update:
        user = await users.get_for_update(session, user_id)
    else:
        user = await users.get(session, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


class ProgressionService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        guard: WriteGuard,
        users: UserRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._users = users

    async def register_user(self, username: str, email: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a new user with default progression.

        Raises:
            ValidationError: Empty or over-long username
            InvalidOperationError: Username or email already registered
        """
        if not isinstance(username, str) or not username.strip():
            raise ValidationError("username", "username must be a non-empty string")
        username = username.strip()
        if len(username) > MAX_USERNAME_LENGTH:
            raise ValidationError(
                "username", f"username must be at most {MAX_USERNAME_LENGTH} characters"
            )
        if email is not None:
            email = email.strip().lower()
            if "@" not in email:
                raise ValidationError("email", "email must contain '@'")

        async def work(session: AsyncSession) -> User:
            if await self._users.find_by_username(session, username):
                raise InvalidOperationError("register_user", f"username '{username}' is taken")
            if email and await self._users.find_by_email(session, email):
                raise InvalidOperationError("register_user", "email is already registered")

            user = User(
                username=username,
                email=email,
                level=1,
                xp=0,
                coins=0,
                rank=Rank.E.value,
                stats=default_stats(),
                titles=[],
                active_title=None,
                total_missions=0,
                completed_tracker_ids=[],
            )
            return await self._users.add(session, user)

        user = await self._guard.run(
            "progression.register_user", [f"username:{username.lower()}"], work
        )
        self.log_operation("register_user", user_id=user.id, username=username)
        await self.emit_event("progression.user_registered", {"user_id": user.id})
        return user_snapshot(user)

    async def get_profile(self, user_id: int) -> Dict[str, Any]:
        """
        User snapshot plus the XP needed to reach the next user level and
        each next stat level (None once saturated).

        Raises:
            NotFoundError: If the user does not exist
        """
        async with self._guard.database.session() as session:
            user = await load_user(self._users, session, user_id)

        profile = user_snapshot(user)
        profile["xp_to_next_level"] = USER_LEVELS.threshold_for_level(user.level)
        profile["stat_thresholds"] = {
            stat: STAT_LEVELS.threshold_for_level(int(block.get("level", 1)))
            for stat, block in (user.stats or {}).items()
        }
        return profile
