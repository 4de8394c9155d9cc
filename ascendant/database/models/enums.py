"""
Database Model Enums
====================

Lightweight enumerations for database models.

These enums provide type-safe constants for categorical fields across the
schema. Services reference them for business logic; the enums themselves
carry only ordering helpers, no rules.
"""

from __future__ import annotations

import enum
from typing import List, Optional


class StatName(str, enum.Enum):
    """The five trainable user stats. Quests and sidequests target one."""

    STRENGTH = "strength"
    INTELLIGENCE = "intelligence"
    AGILITY = "agility"
    ENDURANCE = "endurance"
    CHARISMA = "charisma"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class Rank(str, enum.Enum):
    """
    Prestige tier shared by missions, trackers and users.

    Declaration order is the ascending order E < D < C < B < A < S.
    """

    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"

    @property
    def index(self) -> int:
        return list(Rank).index(self)

    def next(self) -> Optional["Rank"]:
        """The rank one step up, or None at S."""
        order = list(Rank)
        position = order.index(self)
        return order[position + 1] if position + 1 < len(order) else None


class SpecialReward(str, enum.Enum):
    """Special reward tier attached to a mission reward envelope."""

    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"


class TrackerStatus(str, enum.Enum):
    """
    Tracker lifecycle.

    ACTIVE -> COMPLETED when daycount reaches duration.
    ACTIVE -> DELETED on missionFail, abandon or delete. Deleted trackers
    are removed from storage; the value appears in operation results.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    DELETED = "deleted"


class PenaltyType(str, enum.Enum):
    """Penalty decision passed to a daily refresh."""

    SKIP = "skip"
    MISSION_FAIL = "missionFail"


class SidequestDifficulty(str, enum.Enum):
    TRIVIAL = "trivial"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SidequestStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
