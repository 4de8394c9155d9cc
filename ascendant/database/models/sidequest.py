"""
Sidequest: a one-off personal task with a small fixed reward.

Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ascendant.core.database.base import Base, IdMixin, TimestampMixin
from ascendant.database.models.enums import SidequestStatus


class Sidequest(Base, IdMixin, TimestampMixin):
    __tablename__ = "sidequests"
    __table_args__ = (Index("ix_sidequests_user_status", "user_id", "status"),)

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    stat: Mapped[str] = mapped_column(String(32), nullable=False)
    xp: Mapped[int] = mapped_column(Integer, nullable=False)
    coins: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SidequestStatus.PENDING.value
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
