"""PenaltyEngine: daily refresh and the caller-side classifier."""

from ascendant.modules.penalty.classifier import (
    NO_REFRESH,
    RefreshAction,
    RefreshDecision,
    classify_penalty,
)
from ascendant.modules.penalty.service import PenaltyService, parse_penalty_type

__all__ = [
    "NO_REFRESH",
    "PenaltyService",
    "RefreshAction",
    "RefreshDecision",
    "classify_penalty",
    "parse_penalty_type",
]
