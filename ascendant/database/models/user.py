"""
User: progression aggregate for one account.

Schema only. Level, XP, coins and stats change only through the
ProgressionLedger; every other write goes through a domain service.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ascendant.core.database.base import Base, IdMixin, JSONType, TimestampMixin
from ascendant.database.models.enums import Rank, StatName

StatBlock = Dict[str, Dict[str, int]]


def default_stats() -> StatBlock:
    """Fresh stat block: every stat at value 0, level 1."""
    return {stat: {"value": 0, "level": 1} for stat in StatName.values()}


class User(Base, IdMixin, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("level >= 1", name="ck_users_level_positive"),
        CheckConstraint("xp >= 0", name="ck_users_xp_non_negative"),
        CheckConstraint("coins >= 0", name="ck_users_coins_non_negative"),
        Index("ix_users_xp", "xp"),
        Index("ix_users_level", "level"),
    )

    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    coins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rank: Mapped[str] = mapped_column(String(1), nullable=False, default=Rank.E.value)

    stats: Mapped[StatBlock] = mapped_column(JSONType, nullable=False, default=default_stats)

    # set semantics; index 0 is the equipped title
    titles: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    active_title: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    total_missions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_tracker_ids: Mapped[List[int]] = mapped_column(
        JSONType, nullable=False, default=list
    )

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, doc="Optimistic locking version"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} level={self.level} rank={self.rank}>"
