"""UpgradeEngine: adaptive quest difficulty."""

from ascendant.modules.upgrade.service import (
    DifficultyScore,
    UpgradeService,
    escalate_envelope,
    score_difficulty,
)

__all__ = ["DifficultyScore", "UpgradeService", "escalate_envelope", "score_difficulty"]
