"""
ProgressionLedger
=================

Purpose
-------
Apply XP, coin and stat-XP deltas to a User in place, cascading level-ups
and level-downs through the leveling tables. This is the only code that
writes `level`, `xp`, `coins` and `stats`.

Responsibilities
----------------
- `apply_xp`: user XP with multi-level jumps up and level loss down
- `apply_stat_xp`: the same cascade on one stat using the stat table
- `apply_coins`: coin balance, floored at zero
- Return an immutable change record for reporting and events

Design Notes
------------
- Pure and synchronous; no session, no config, no events. Callers own
  persistence and notifications.
- XP is progress inside the current level. After any call
  `xp < threshold(level)` holds, except that at the table's max level XP
  stops one short of the final threshold and the excess is discarded.
- Level-down: while XP is negative and level > 1, drop a level and add back
  that lower level's threshold; finally floor XP at 0. Level never goes
  below 1.
- JSON columns are replaced, never mutated in place, so the ORM sees the
  change.

Usage
-----
>>> ledger = ProgressionLedger()
>>> change = ledger.apply_xp(user, 100)
>>> change.levels_gained
2
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ascendant.database.models.enums import StatName
from ascendant.modules.shared.exceptions import ValidationError
from ascendant.modules.shared.leveling import STAT_LEVELS, USER_LEVELS, LevelingTable


@dataclass(frozen=True)
class LevelChange:
    old_level: int
    new_level: int
    old_xp: int
    new_xp: int

    @property
    def levels_gained(self) -> int:
        return max(0, self.new_level - self.old_level)

    @property
    def levels_lost(self) -> int:
        return max(0, self.old_level - self.new_level)

    @property
    def level_changed(self) -> bool:
        return self.new_level != self.old_level


@dataclass(frozen=True)
class StatChange:
    stat: str
    old_level: int
    new_level: int
    old_value: int
    new_value: int

    @property
    def levels_gained(self) -> int:
        return max(0, self.new_level - self.old_level)

    @property
    def levels_lost(self) -> int:
        return max(0, self.old_level - self.new_level)

    def to_dict(self) -> Dict[str, Any]:
        return {"stat": self.stat, "value": self.new_value, "level": self.new_level}


@dataclass(frozen=True)
class CoinChange:
    old_coins: int
    new_coins: int

    @property
    def applied(self) -> int:
        """Actual change after flooring at zero."""
        return self.new_coins - self.old_coins


def _require_int(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(name, f"{name} must be an integer, got {value!r}")
    return value


def cascade(level: int, xp: int, delta: int, table: LevelingTable) -> Tuple[int, int]:
    """
    Apply `delta` to (level, xp) on `table` and return the new pair.

    Example:
        >>> cascade(1, 30, 30, USER_LEVELS)
        (2, 20)
    """
    xp += delta

    if delta >= 0:
        while True:
            threshold = table.threshold_for_level(level)
            if threshold is None or xp < threshold:
                break
            if table.is_saturated(level):
                xp = threshold - 1
                break
            xp -= threshold
            level += 1
        return level, xp

    while xp < 0 and level > 1:
        level -= 1
        xp += table.threshold_for_level(level) or 0
    return level, max(0, xp)


class ProgressionLedger:
    """
    Stateless delta application over the User aggregate.

    Args:
        user_table: Leveling table for user levels
        stat_table: Leveling table for stat levels
    """

    def __init__(
        self,
        user_table: LevelingTable = USER_LEVELS,
        stat_table: LevelingTable = STAT_LEVELS,
    ) -> None:
        self.user_table = user_table
        self.stat_table = stat_table

    def apply_xp(self, user: Any, delta: int) -> LevelChange:
        """
        Add (or remove) user XP with level cascading.

        Raises:
            ValidationError: If delta is not an integer
        """
        _require_int(delta, "xp_delta")
        old_level, old_xp = user.level, user.xp
        user.level, user.xp = cascade(old_level, old_xp, delta, self.user_table)
        return LevelChange(old_level, user.level, old_xp, user.xp)

    def apply_stat_xp(self, user: Any, stat: str, delta: int) -> StatChange:
        """
        Add (or remove) XP on one stat with level cascading.

        Raises:
            ValidationError: If stat is unknown or delta is not an integer
        """
        _require_int(delta, "stat_delta")
        stat_key = stat.value if isinstance(stat, StatName) else stat
        if stat_key not in StatName.values():
            raise ValidationError("stat", f"Unknown stat '{stat}'")

        stats: Dict[str, Dict[str, int]] = copy.deepcopy(user.stats or {})
        block = stats.get(stat_key) or {"value": 0, "level": 1}
        old_level, old_value = int(block.get("level", 1)), int(block.get("value", 0))

        new_level, new_value = cascade(old_level, old_value, delta, self.stat_table)
        stats[stat_key] = {"value": new_value, "level": new_level}
        user.stats = stats

        return StatChange(stat_key, old_level, new_level, old_value, new_value)

    def apply_coins(self, user: Any, delta: int) -> CoinChange:
        """Add (or remove) coins; the balance never goes below zero."""
        _require_int(delta, "coin_delta")
        old = user.coins
        user.coins = max(0, old + delta)
        return CoinChange(old, user.coins)
