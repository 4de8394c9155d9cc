"""
Caller-side refresh classifier.

Decides, from a tracker's timestamps, what a daily refresh should do. The
PenaltyEngine itself receives only the decision; callers run this once per
tracker per day and skip the refresh when it returns NO_REFRESH, which is
what prevents double penalties.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from ascendant.database.models.enums import PenaltyType
from ascendant.modules.shared.clock import calendar_days_between, day_key

MISSION_FAIL_MISSED_DAYS = 7


class RefreshAction(str, Enum):
    NO_REFRESH = "no_refresh"
    REFRESH = "refresh"


@dataclass(frozen=True)
class RefreshDecision:
    action: RefreshAction
    penalty_type: Optional[PenaltyType] = None
    missed_days: int = 0

    @property
    def should_refresh(self) -> bool:
        return self.action is RefreshAction.REFRESH


NO_REFRESH = RefreshDecision(RefreshAction.NO_REFRESH)


def classify_penalty(
    last_updated: Optional[datetime],
    last_completed: Optional[datetime],
    today: Union[datetime, date],
    *,
    mission_fail_after: int = MISSION_FAIL_MISSED_DAYS,
) -> RefreshDecision:
    """
    Classify a tracker for today's refresh.

    - refreshed already today -> NO_REFRESH
    - last completion yesterday -> refresh, no penalty
    - never completed -> skip
    - missed = calendar days since last completion - 1;
      missed >= mission_fail_after -> missionFail, 1..(mission_fail_after-1) -> skip

    Example:
        >>> classify_penalty(mon, mon, wed).penalty_type
        <PenaltyType.SKIP: 'skip'>
    """
    if last_updated is not None and day_key(last_updated) == day_key(today):
        return NO_REFRESH

    if last_completed is None:
        return RefreshDecision(RefreshAction.REFRESH, PenaltyType.SKIP)

    missed = calendar_days_between(today, last_completed) - 1
    if missed >= mission_fail_after:
        return RefreshDecision(RefreshAction.REFRESH, PenaltyType.MISSION_FAIL, missed)
    if missed >= 1:
        return RefreshDecision(RefreshAction.REFRESH, PenaltyType.SKIP, missed)
    return RefreshDecision(RefreshAction.REFRESH, None, max(0, missed))
