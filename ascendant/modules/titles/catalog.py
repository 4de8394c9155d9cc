"""
Title catalog and requirement checks.

The catalog is balance data (`titles.catalog` in config). Each title lists
requirements that must all hold. A title with no requirements is always
eligible; an unknown requirement type never is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from ascendant.database.models import Rank
from ascendant.modules.shared.exceptions import ValidationError
from ascendant.modules.shared.leveling import STAT_LEVELS, LevelingTable


class TitleRequirement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    value: Union[int, str]
    stat: Optional[str] = None


class TitleDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    tier: int = 1
    flavor: str = ""
    group: Optional[str] = None
    hidden: bool = False
    requirements: List[TitleRequirement] = []


def load_catalog(raw: Optional[Iterable[Dict[str, Any]]]) -> List[TitleDefinition]:
    """
    Parse the configured catalog, sorted by tier.

    Raises:
        ValidationError: If an entry does not match the title schema
    """
    try:
        titles = [TitleDefinition.model_validate(entry) for entry in (raw or [])]
    except PydanticValidationError as exc:
        raise ValidationError("titles.catalog", str(exc)) from exc
    return sorted(titles, key=lambda title: title.tier)


def cumulative_stat_xp(block: Optional[Dict[str, int]], table: LevelingTable = STAT_LEVELS) -> int:
    """Total XP ever earned on a stat: thresholds of passed levels plus current progress."""
    block = block or {}
    level = int(block.get("level", 1))
    passed = sum(table.threshold_for_level(lvl) or 0 for lvl in range(1, level))
    return passed + int(block.get("value", 0))


@dataclass(frozen=True)
class HunterRecord:
    """The facts title requirements are checked against."""

    level: int
    coins: int
    rank: str
    missions_completed: int
    best_streak: int
    stats: Dict[str, Dict[str, int]]


def requirement_met(requirement: TitleRequirement, record: HunterRecord) -> bool:
    kind = requirement.type
    try:
        if kind == "rank":
            return Rank(record.rank).index >= Rank(str(requirement.value)).index
        target = int(requirement.value)
    except ValueError:
        return False

    if kind == "level":
        return record.level >= target
    if kind == "missionsCompleted":
        return record.missions_completed >= target
    if kind == "streak":
        return record.best_streak >= target
    if kind == "coins":
        return record.coins >= target
    if kind == "statLevel":
        if not requirement.stat:
            return False
        return int((record.stats.get(requirement.stat) or {}).get("level", 1)) >= target
    if kind == "statTotal":
        if requirement.stat:
            return cumulative_stat_xp(record.stats.get(requirement.stat)) >= target
        return sum(cumulative_stat_xp(block) for block in record.stats.values()) >= target
    return False


def is_eligible(title: TitleDefinition, record: HunterRecord) -> bool:
    return all(requirement_met(req, record) for req in title.requirements)
