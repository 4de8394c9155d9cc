"""
UpgradeEngine
=============

Purpose
-------
Re-score a tracker's difficulty once the user has kept a streak, replace
its quests with harder ones from the content generator, and escalate the
rank/reward/penalty envelope when difficulty crosses the escalation line.

Scoring
-------
    completion_rate = quest ids in the completion log / len(current) * 100
    base            = mean xp of current quests
    new_difficulty  = base + streak*2 - penalties*5 + completion_rate*0.5
    max_xp          = clamp(round(new_difficulty), 1, 50)

`max_xp` is the target handed to the generator. Replacement quest xp is
only bounded by the quest schema, [1, 50].

Weights, the minimum streak and all caps come from `upgrade.*` config.

Phases
------
1. Read the tracker and its quests, score them (no lock held).
2. Ask the generator for replacement quests and validate the payload.
3. Under the user and tracker locks, re-read the tracker. If its version
   moved since phase 1, raise StateConflictError. Otherwise persist the new
   quests and rewrite the tracker.

A generator failure, timeout or bad payload aborts before phase 3, so the
tracker is left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ascendant.database.models import Quest, Rank, Tracker
from ascendant.modules.missions.generator import invoke_generator
from ascendant.modules.missions.repository import QuestRepository
from ascendant.modules.missions.schema import QuestDraft, parse_upgrade
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.exceptions import (
    InvalidOperationError,
    StateConflictError,
    ValidationError,
)
from ascendant.modules.shared.guard import WriteGuard, tracker_lock, user_lock
from ascendant.modules.tracker.repository import TrackerRepository
from ascendant.modules.tracker.service import load_owned_tracker, require_active

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus
    from ascendant.modules.missions.generator import ContentGenerator
    from ascendant.modules.shared.clock import Clock


@dataclass(frozen=True)
class DifficultyScore:
    completion_rate: float
    base_difficulty: float
    new_difficulty: float
    max_xp: int


def completed_quest_count(quest_completion: Dict[str, List[int]]) -> int:
    return sum(len(ids or []) for ids in (quest_completion or {}).values())


def score_difficulty(
    quest_xps: List[int],
    completed_count: int,
    streak: int,
    penalty_count: int,
    *,
    streak_weight: float = 2,
    penalty_weight: float = 5,
    completion_weight: float = 0.5,
    xp_min: int = 1,
    xp_max: int = 50,
) -> DifficultyScore:
    """
    >>> score_difficulty([10, 20], completed_count=10, streak=5, penalty_count=1)
    DifficultyScore(completion_rate=500.0, base_difficulty=15.0, new_difficulty=270.0, max_xp=50)
    """
    total = len(quest_xps)
    completion_rate = (completed_count / total) * 100 if total else 0.0
    base = sum(quest_xps) / total if total else 0.0
    new_difficulty = (
        base
        + streak * streak_weight
        - penalty_count * penalty_weight
        + completion_rate * completion_weight
    )
    max_xp = min(xp_max, max(xp_min, round(new_difficulty)))
    return DifficultyScore(completion_rate, base, new_difficulty, max_xp)


def escalate_envelope(
    rank: Rank,
    reward: Dict[str, Any],
    penalty: Dict[str, Dict[str, int]],
    config: Dict[str, Any],
) -> Dict[str, Any]:
    """
    One escalation step: next rank, richer reward, harsher penalties.

    Returns the new {"rank", "reward", "penalty"}. S rank is returned
    unchanged.
    """
    next_rank = rank.next()
    if next_rank is None:
        return {"rank": rank, "reward": dict(reward), "penalty": penalty}

    reward_cfg = config.get("reward", {})
    new_reward = {
        "xp": min(reward_cfg.get("xp_cap", 500), int(reward.get("xp", 0)) + reward_cfg.get("xp_step", 50)),
        "coins": min(
            reward_cfg.get("coins_cap", 100), int(reward.get("coins", 0)) + reward_cfg.get("coins_step", 10)
        ),
        "specialReward": config.get("special_reward_by_rank", {}).get(
            next_rank.value, reward.get("specialReward")
        ),
    }

    penalty_cfg = config.get("penalty", {})
    new_penalty: Dict[str, Dict[str, int]] = {}
    for key, cfg_key in (("missionFail", "mission_fail"), ("skip", "skip")):
        line = penalty.get(key) or {}
        steps = penalty_cfg.get(cfg_key, {})
        new_penalty[key] = {
            "coins": min(steps.get("coins_cap", 0), int(line.get("coins", 0)) + steps.get("coins_step", 0)),
            "stats": min(steps.get("stats_cap", 0), int(line.get("stats", 0)) + steps.get("stats_step", 0)),
        }

    return {"rank": next_rank, "reward": new_reward, "penalty": new_penalty}


class UpgradeService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        guard: WriteGuard,
        clock: Clock,
        generator: ContentGenerator,
        trackers: TrackerRepository,
        quests: QuestRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._clock = clock
        self._generator = generator
        self._trackers = trackers
        self._quests = quests

    def _score(self, tracker: Tracker, quests: List[Quest]) -> DifficultyScore:
        return score_difficulty(
            [quest.xp for quest in quests],
            completed_quest_count(tracker.quest_completion),
            tracker.streak,
            len(tracker.penalties_applied or []),
            streak_weight=self.get_config("upgrade.streak_weight", 2),
            penalty_weight=self.get_config("upgrade.penalty_weight", 5),
            completion_weight=self.get_config("upgrade.completion_weight", 0.5),
            xp_min=self.get_config("upgrade.quest_xp_min", 1),
            xp_max=self.get_config("upgrade.quest_xp_max", 50),
        )

    async def upgrade_tracker(self, user_id: int, tracker_id: int) -> Dict[str, Any]:
        """
        Upgrade a tracker's quests if its streak allows.

        Returns:
            {upgraded: False, reason, ...} below the streak threshold,
            otherwise {upgraded, new_difficulty, max_xp, completion_rate,
            rank, rank_changed, reward, penalty, quests}

        Raises:
            NotFoundError: Tracker missing
            InvalidOperationError: Not owned, not active, or no quests
            ValidationError: Generator payload rejected
            ExternalServiceError: Generator failure or timeout
            StateConflictError: Tracker changed while the generator ran
        """
        min_streak = int(self.get_config("upgrade.min_streak", 5))

        # Phase 1: read and score
        async with self._guard.database.session() as session:
            tracker = await load_owned_tracker(
                self._trackers, session, user_id, tracker_id, "upgrade_tracker", for_update=False
            )
            require_active(tracker, "upgrade_tracker")
            if tracker.streak < min_streak:
                return {
                    "upgraded": False,
                    "reason": f"streak must be at least {min_streak} to upgrade",
                    "streak": tracker.streak,
                    "required_streak": min_streak,
                }
            current = await self._quests.get_ordered(session, tracker.current_quests or [])
            if not current:
                raise InvalidOperationError("upgrade_tracker", "tracker has no quests")
            read_version = tracker.version
            score = self._score(tracker, current)
            streak = tracker.streak

        # Phase 2: generate and validate (no locks held)
        existing = [quest.to_dict() for quest in current]
        raw = await invoke_generator(
            lambda: self._generator.upgrade_quests(existing, score.max_xp, streak),
            operation="upgrade.generate",
        )
        draft = parse_upgrade(raw)
        if len(draft.quests) != len(current):
            raise ValidationError(
                "generator_output",
                f"expected {len(current)} upgraded quests, got {len(draft.quests)}",
            )
        replacements: List[QuestDraft] = list(draft.quests)

        # Phase 3: write
        async def work(session: AsyncSession) -> Dict[str, Any]:
            fresh = await load_owned_tracker(
                self._trackers, session, user_id, tracker_id, "upgrade_tracker"
            )
            require_active(fresh, "upgrade_tracker")
            if fresh.version != read_version:
                raise StateConflictError("Tracker", tracker_id, "changed during upgrade")

            new_quests = [
                Quest(title=quest.title, stat_affected=quest.stat_affected.value, xp=quest.xp)
                for quest in replacements
            ]
            await self._quests.add_many(session, new_quests)
            new_ids = [quest.id for quest in new_quests]

            fresh.current_quests = list(new_ids)
            fresh.remaining_quests = list(new_ids)
            fresh.quest_completion = {}
            fresh.daycount = 0
            fresh.last_updated = self._clock.now()

            old_rank = Rank(fresh.rank)
            rank_changed = False
            escalation = float(self.get_config("upgrade.escalation_difficulty", 40))
            if score.new_difficulty > escalation and old_rank is not Rank.S:
                envelope = escalate_envelope(
                    old_rank, fresh.reward or {}, fresh.penalty or {}, self.get_config("upgrade", {})
                )
                fresh.rank = envelope["rank"].value
                fresh.reward = envelope["reward"]
                fresh.penalty = envelope["penalty"]
                rank_changed = True

            return {
                "upgraded": True,
                "tracker_id": tracker_id,
                "new_difficulty": round(score.new_difficulty, 2),
                "base_difficulty": round(score.base_difficulty, 2),
                "max_xp": score.max_xp,
                "completion_rate": round(score.completion_rate, 2),
                "rank": fresh.rank,
                "previous_rank": old_rank.value,
                "rank_changed": rank_changed,
                "reward": dict(fresh.reward),
                "penalty": {k: dict(v) for k, v in fresh.penalty.items()},
                "quests": [quest.to_dict() for quest in new_quests],
            }

        result = await self._guard.run_once([user_lock(user_id), tracker_lock(tracker_id)], work)

        self.log_operation(
            "upgrade_tracker",
            user_id=user_id,
            tracker_id=tracker_id,
            new_difficulty=result["new_difficulty"],
            rank=result["rank"],
            rank_changed=result["rank_changed"],
        )
        await self.emit_event(
            "upgrade.applied",
            {
                "user_id": user_id,
                "tracker_id": tracker_id,
                "rank": result["rank"],
                "rank_changed": result["rank_changed"],
            },
        )
        return result

    async def preview(self, user_id: int, tracker_id: int) -> Optional[DifficultyScore]:
        """Current difficulty score without upgrading; None below the streak threshold."""
        async with self._guard.database.session() as session:
            tracker = await load_owned_tracker(
                self._trackers, session, user_id, tracker_id, "upgrade_preview", for_update=False
            )
            if tracker.streak < int(self.get_config("upgrade.min_streak", 5)):
                return None
            current = await self._quests.get_ordered(session, tracker.current_quests or [])
            return self._score(tracker, current)
