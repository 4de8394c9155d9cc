"""Progression: ledger, user repository and account service."""

from ascendant.modules.progression.ledger import (
    CoinChange,
    LevelChange,
    ProgressionLedger,
    StatChange,
)
from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.progression.service import ProgressionService

__all__ = [
    "CoinChange",
    "LevelChange",
    "ProgressionLedger",
    "ProgressionService",
    "StatChange",
    "UserRepository",
]
