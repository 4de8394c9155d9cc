"""
Tracker: one user's progress through one mission.

Schema only. The mission envelope (title, description, duration, reward,
penalty, rank) is copied in at join time so upgrades can evolve it without
touching the shared Mission row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ascendant.core.database.base import Base, IdMixin, JSONType, TimestampMixin
from ascendant.database.models.enums import Rank, TrackerStatus


class Tracker(Base, IdMixin, TimestampMixin):
    __tablename__ = "trackers"
    __table_args__ = (
        UniqueConstraint("user_id", "mission_id", name="uq_trackers_user_mission"),
        Index("ix_trackers_user_status", "user_id", "status"),
    )

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("missions.id"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    reward: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    penalty: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    rank: Mapped[str] = mapped_column(String(1), nullable=False, default=Rank.E.value)

    # remaining is always a subset of current
    current_quests: Mapped[List[int]] = mapped_column(JSONType, nullable=False, default=list)
    remaining_quests: Mapped[List[int]] = mapped_column(JSONType, nullable=False, default=list)
    # {"YYYY-MM-DD": [quest_id, ...]}
    quest_completion: Mapped[Dict[str, List[int]]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daycount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_completed: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    penalties_applied: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    failed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TrackerStatus.ACTIVE.value
    )

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, doc="Optimistic locking version"
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def daily_completed(self) -> bool:
        return not self.remaining_quests

    @property
    def is_active(self) -> bool:
        return self.status == TrackerStatus.ACTIVE.value
