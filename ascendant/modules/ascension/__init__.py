"""AscensionEvaluator: hunter score and rank promotion."""

from ascendant.modules.ascension.service import (
    AscensionService,
    HunterScore,
    compute_hunter_score,
    rank_for_score,
)

__all__ = ["AscensionService", "HunterScore", "compute_hunter_score", "rank_for_score"]
