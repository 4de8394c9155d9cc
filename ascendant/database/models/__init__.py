"""
Database Models Package
========================

Schema-only SQLAlchemy models for Ascendant:

- User: progression aggregate (level, xp, coins, rank, stats, titles)
- Mission / Quest: generated or custom content
- Tracker: one user's progress through one mission
- Sidequest: one-off tasks
- enums: shared categorical constants
"""

from ascendant.core.database.base import Base

from .enums import (
    PenaltyType,
    Rank,
    SidequestDifficulty,
    SidequestStatus,
    SpecialReward,
    StatName,
    TrackerStatus,
)
from .mission import Mission, Quest
from .sidequest import Sidequest
from .tracker import Tracker
from .user import User, default_stats

__all__ = [
    "Base",
    "Mission",
    "PenaltyType",
    "Quest",
    "Rank",
    "Sidequest",
    "SidequestDifficulty",
    "SidequestStatus",
    "SpecialReward",
    "StatName",
    "Tracker",
    "TrackerStatus",
    "User",
    "default_stats",
]
