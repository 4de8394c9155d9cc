"""
Leveling tables

Purpose
-------
Pure lookup of the XP needed to advance past a level, for user levels and
for stat levels. Both tables are generated once at import time from the
same monotonically increasing curve with different parameters.

Design Notes
------------
- Pure functions only (no side effects, no config access).
- `threshold_for_level(level)` is the XP required *within* `level` to reach
  `level + 1`. XP is stored as progress inside the current level.
- Tables are defined on [1, MAX_LEVEL]. Past MAX_LEVEL there is no further
  threshold and lookups return None; level growth saturates there.

Usage
-----
    from ascendant.modules.shared.leveling import USER_LEVELS

    USER_LEVELS.threshold_for_level(1)   # 40
    USER_LEVELS.threshold_for_level(2)   # 51
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Optional

from ascendant.modules.shared.exceptions import ValidationError

MAX_LEVEL = 169


def generate_thresholds(
    max_level: int,
    base_xp: float = 10,
    exponent: float = 1.7,
    offset: int = 0,
) -> Dict[int, int]:
    """
    Generate the per-level XP thresholds.

    Each level's requirement grows by floor((level + offset) ** exponent) + 10
    over the previous one, starting from `base_xp`.

    Example:
        >>> generate_thresholds(3, base_xp=40, exponent=2.3)
        {1: 40, 2: 51, 3: 65}
    """
    thresholds: Dict[int, int] = {}
    xp = base_xp
    for level in range(1, max_level + 1):
        thresholds[level] = math.floor(xp)
        xp += math.floor((level + offset) ** exponent) + 10
    return thresholds


@dataclass(frozen=True)
class LevelingTable:
    """
    One immutable leveling curve.

    Attributes:
        name: Table identifier used in logs and error messages
        base_xp: Threshold of level 1
        exponent: Growth exponent
        offset: Level offset applied before exponentiation
        max_level: Highest level with a threshold
    """

    name: str
    base_xp: float
    exponent: float
    offset: int = 0
    max_level: int = MAX_LEVEL
    _thresholds: Dict[int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_thresholds",
            generate_thresholds(self.max_level, self.base_xp, self.exponent, self.offset),
        )

    def threshold_for_level(self, level: int) -> Optional[int]:
        """
        XP needed inside `level` to advance to `level + 1`.

        Returns None past `max_level` (saturated).

        Raises:
            ValidationError: If level is not a positive integer
        """
        if not isinstance(level, int) or isinstance(level, bool) or level < 1:
            raise ValidationError("level", f"level must be an integer >= 1, got {level!r}")
        return self._thresholds.get(level)

    def is_saturated(self, level: int) -> bool:
        return level >= self.max_level


USER_LEVELS = LevelingTable(name="user", base_xp=40, exponent=2.3, offset=0)
STAT_LEVELS = LevelingTable(name="stat", base_xp=20, exponent=2.1, offset=0)
