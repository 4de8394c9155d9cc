"""
AscensionEvaluator
==================

Purpose
-------
Score a user's overall progress ("hunter score") and promote their rank
when the score crosses the next threshold. Promotion pays a reward per
rank step and grants a "{rank}-Rank Hunter" title. Ranks never go down.

Scoring
-------
    xp_score      = xp * w.xp
    stat_score    = sum(stat levels) * m.stat_levels * w.stat_levels
    mission_score = total_missions * m.missions * w.missions
    success_score = success_rate * m.success_rate * w.success_rate
    streak_score  = avg_streak * m.streak * w.streak

`success_rate` is completed trackers over total missions joined (0 with no
missions). `avg_streak` is the mean over active trackers (0 with none).
Weights (w), multipliers (m), thresholds and rewards come from
`ascension.*` config.

The report always reflects the state before any reward is applied. Its
`components` holds the five weighted scores and the inputs behind them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ascendant.database.models import Rank, User
from ascendant.modules.progression.ledger import ProgressionLedger
from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.progression.service import load_user
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.guard import WriteGuard, user_lock
from ascendant.modules.tracker.repository import TrackerRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus


DEFAULT_WEIGHTS = {"xp": 0.3, "stat_levels": 0.3, "missions": 0.2, "success_rate": 0.1, "streak": 0.1}
DEFAULT_MULTIPLIERS = {"stat_levels": 10, "missions": 20, "success_rate": 100, "streak": 5}
DEFAULT_THRESHOLDS = {"E": 0, "D": 300, "C": 600, "B": 1000, "A": 1500, "S": 2200}


@dataclass(frozen=True)
class HunterScore:
    xp_score: float
    stat_score: float
    mission_score: float
    success_score: float
    streak_score: float
    xp: int = 0
    total_stat_levels: int = 0
    total_missions: int = 0
    completed_missions: int = 0
    success_rate: float = 0.0
    avg_streak: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.xp_score
            + self.stat_score
            + self.mission_score
            + self.success_score
            + self.streak_score
        )

    def components(self) -> Dict[str, float]:
        return {name: round(value, 2) for name, value in asdict(self).items()}


def compute_hunter_score(
    xp: int,
    stat_level_total: int,
    total_missions: int,
    completed_missions: int,
    streaks: List[int],
    weights: Optional[Mapping[str, float]] = None,
    multipliers: Optional[Mapping[str, float]] = None,
) -> HunterScore:
    """
    >>> compute_hunter_score(1000, 10, 0, 0, []).total
    330.0
    """
    w = {**DEFAULT_WEIGHTS, **(weights or {})}
    m = {**DEFAULT_MULTIPLIERS, **(multipliers or {})}

    success_rate = completed_missions / total_missions if total_missions > 0 else 0.0
    avg_streak = sum(streaks) / len(streaks) if streaks else 0.0

    return HunterScore(
        xp_score=xp * w["xp"],
        stat_score=stat_level_total * m["stat_levels"] * w["stat_levels"],
        mission_score=total_missions * m["missions"] * w["missions"],
        success_score=success_rate * m["success_rate"] * w["success_rate"],
        streak_score=avg_streak * m["streak"] * w["streak"],
        xp=xp,
        total_stat_levels=stat_level_total,
        total_missions=total_missions,
        completed_missions=completed_missions,
        success_rate=success_rate,
        avg_streak=avg_streak,
    )


def rank_for_score(score: float, thresholds: Optional[Mapping[str, float]] = None) -> Rank:
    """Highest rank whose threshold the score meets."""
    table = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
    best = Rank.E
    for rank in Rank:
        if score >= table.get(rank.value, float("inf")):
            best = rank
    return best


def stat_level_total(user: User) -> int:
    return sum(int((block or {}).get("level", 1)) for block in (user.stats or {}).values())


class AscensionService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        guard: WriteGuard,
        ledger: ProgressionLedger,
        users: UserRepository,
        trackers: TrackerRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._ledger = ledger
        self._users = users
        self._trackers = trackers

    async def evaluate_ascension(self, user_id: int) -> Dict[str, Any]:
        """
        Score the user and promote their rank if the score allows.

        Returns:
            {current_rank, evaluated_rank, ascended, steps, hunter_score,
            components, reward}

        Raises:
            NotFoundError: User missing
        """

        async def work(session: AsyncSession) -> Dict[str, Any]:
            user = await load_user(self._users, session, user_id, for_update=True)
            active = await self._trackers.find_active_for_user(session, user_id)

            score = compute_hunter_score(
                user.xp,
                stat_level_total(user),
                user.total_missions,
                len(user.completed_tracker_ids or []),
                [tracker.streak for tracker in active],
                weights=self.get_config("ascension.weights"),
                multipliers=self.get_config("ascension.multipliers"),
            )
            current = Rank(user.rank)
            evaluated = rank_for_score(score.total, self.get_config("ascension.thresholds"))
            steps = max(0, evaluated.index - current.index)

            report: Dict[str, Any] = {
                "user_id": user_id,
                "current_rank": current.value,
                "evaluated_rank": evaluated.value,
                "ascended": steps > 0,
                "steps": steps,
                "hunter_score": round(score.total, 2),
                "components": score.components(),
                "reward": None,
                "old_level": user.level,
                "new_level": user.level,
            }
            if not steps:
                return report

            per_step = self.get_config("ascension.reward_per_step", {}) or {}
            xp_reward = int(per_step.get("xp", 400)) * steps
            coin_reward = int(per_step.get("coins", 1500)) * steps
            title = f"{evaluated.value}-Rank Hunter"

            self._ledger.apply_xp(user, xp_reward)
            self._ledger.apply_coins(user, coin_reward)
            titles = list(user.titles or [])
            if title not in titles:
                titles.append(title)
            user.titles = titles
            user.rank = evaluated.value

            report["reward"] = {"xp": xp_reward, "coins": coin_reward, "title": title}
            report["new_level"] = user.level
            return report

        report = await self._guard.run(
            "ascension.evaluate", [user_lock(user_id)], work, context={"user_id": user_id}
        )

        self.log_operation(
            "evaluate_ascension",
            user_id=user_id,
            hunter_score=report["hunter_score"],
            current_rank=report["current_rank"],
            evaluated_rank=report["evaluated_rank"],
            ascended=report["ascended"],
        )
        if report["ascended"]:
            await self.emit_event(
                "ascension.rank_up",
                {
                    "user_id": user_id,
                    "old_rank": report["current_rank"],
                    "new_rank": report["evaluated_rank"],
                    "steps": report["steps"],
                },
            )
        if report["new_level"] != report["old_level"]:
            await self.emit_event(
                "progression.level_changed",
                {"user_id": user_id, "old_level": report["old_level"], "new_level": report["new_level"]},
            )
        return report
