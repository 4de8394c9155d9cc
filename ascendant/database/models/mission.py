"""
Mission and Quest: generated or custom content.

Schema only. Missions are read-only after creation except `participants`;
quests are immutable once created.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ascendant.core.database.base import Base, IdMixin, JSONType, TimestampMixin
from ascendant.database.models.enums import Rank


class Quest(Base, IdMixin, TimestampMixin):
    """One daily task. `mission_id` is null for quests created by upgrades."""

    __tablename__ = "quests"
    __table_args__ = (CheckConstraint("xp >= 1 AND xp <= 50", name="ck_quests_xp_range"),)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    stat_affected: Mapped[str] = mapped_column(String(32), nullable=False)
    xp: Mapped[int] = mapped_column(Integer, nullable=False)
    mission_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("missions.id", ondelete="SET NULL"), nullable=True, index=True
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "stat_affected": self.stat_affected,
            "xp": self.xp,
        }


class Mission(Base, IdMixin, TimestampMixin):
    """
    A time-boxed bundle of quests with its reward/penalty envelope.

    reward:  {"xp": int, "coins": int, "specialReward": str | None}
    penalty: {"missionFail": {"coins": int, "stats": int},
              "skip": {"coins": int, "stats": int}}
    """

    __tablename__ = "missions"
    __table_args__ = (
        CheckConstraint("duration >= 1", name="ck_missions_duration_positive"),
        Index("ix_missions_public", "public"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    refined_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)

    quest_ids: Mapped[List[int]] = mapped_column(JSONType, nullable=False, default=list)
    reward: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    penalty: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    rank: Mapped[str] = mapped_column(String(1), nullable=False, default=Rank.E.value)

    participants: Mapped[List[int]] = mapped_column(JSONType, nullable=False, default=list)
    public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_custom: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    creator_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, doc="Optimistic locking version"
    )

    __mapper_args__ = {"version_id_col": version}
