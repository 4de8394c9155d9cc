"""User data access."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from ascendant.database.models import User
from ascendant.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


class UserRepository(BaseRepository[User]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(User, logger)

    async def find_by_username(self, session: AsyncSession, username: str) -> Optional[User]:
        return await self.find_one_where(session, User.username == username)

    async def find_by_email(self, session: AsyncSession, email: str) -> Optional[User]:
        return await self.find_one_where(session, User.email == email)

    async def top_by(self, session: AsyncSession, column_name: str, limit: int) -> List[User]:
        """Users ordered by `column_name` descending, ties broken by id."""
        column = getattr(User, column_name)
        return await self.find_many_where(
            session, order_by=[column.desc(), User.id.asc()], limit=limit
        )
