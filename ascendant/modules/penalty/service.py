"""
PenaltyEngine
=============

Purpose
-------
Run a tracker's daily refresh with the penalty decision the caller made
(see `classify_penalty`).

Refresh Semantics
-----------------
- "missionFail": tracker marked failed, missionFail coins and stats applied
  as negative coin and user-XP deltas, streak reset, tracker deleted.
- "skip": skip coins and stats applied the same way, timestamp appended to
  `penalties_applied`, tracker survives. The streak is kept.
- None and "skip": today's remaining quests reset to the full current set
  and `last_updated` set to now.

Penalties are successful outcomes, not errors. Completed trackers cannot
be refreshed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from ascendant.database.models import PenaltyType, TrackerStatus
from ascendant.modules.missions.repository import MissionRepository
from ascendant.modules.penalty.classifier import RefreshDecision, classify_penalty
from ascendant.modules.progression.ledger import ProgressionLedger
from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.progression.service import load_user
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.exceptions import ValidationError
from ascendant.modules.shared.guard import WriteGuard, tracker_lock, user_lock
from ascendant.modules.tracker.repository import TrackerRepository
from ascendant.modules.tracker.service import load_owned_tracker, require_active

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus
    from ascendant.database.models import Tracker
    from ascendant.modules.shared.clock import Clock


def parse_penalty_type(value: Union[None, str, PenaltyType]) -> Optional[PenaltyType]:
    """
    Raises:
        ValidationError: For anything other than None, "skip" or "missionFail"
    """
    if value is None or isinstance(value, PenaltyType):
        return value
    try:
        return PenaltyType(value)
    except ValueError as exc:
        raise ValidationError(
            "penalty_type", f"penalty_type must be null, 'skip' or 'missionFail', got {value!r}"
        ) from exc


class PenaltyService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        guard: WriteGuard,
        clock: Clock,
        ledger: ProgressionLedger,
        users: UserRepository,
        trackers: TrackerRepository,
        missions: MissionRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._clock = clock
        self._ledger = ledger
        self._users = users
        self._trackers = trackers
        self._missions = missions

    def classify(self, tracker: Tracker) -> RefreshDecision:
        """Classifier bound to this engine's clock and configured fail window."""
        return classify_penalty(
            tracker.last_updated,
            tracker.last_completed,
            self._clock.now(),
            mission_fail_after=int(self.get_config("penalty.mission_fail_missed_days", 7)),
        )

    async def daily_refresh(
        self,
        user_id: int,
        tracker_id: int,
        penalty_type: Union[None, str, PenaltyType] = None,
    ) -> Dict[str, Any]:
        """
        Apply the daily refresh for one tracker.

        Returns:
            {tracker_id, penalty_type, penalty_applied, updated_stats:
            {level, xp, coins}, deleted}

        Raises:
            ValidationError: Unknown penalty type
            NotFoundError: Tracker or user missing
            InvalidOperationError: Tracker not owned or not active
        """
        decision = parse_penalty_type(penalty_type)

        async def work(session: AsyncSession) -> Dict[str, Any]:
            tracker = await load_owned_tracker(
                self._trackers, session, user_id, tracker_id, "daily_refresh"
            )
            require_active(tracker, "daily_refresh")
            user = await load_user(self._users, session, user_id, for_update=True)
            now = self._clock.now()
            old_level = user.level
            deleted = False
            applied: Dict[str, int] = {"coins": 0, "xp": 0}

            if decision is not None:
                envelope = (tracker.penalty or {}).get(decision.value) or {}
                coins = int(envelope.get("coins") or 0)
                stats = int(envelope.get("stats") or 0)
                coin_change = self._ledger.apply_coins(user, -coins)
                self._ledger.apply_xp(user, -stats)
                applied = {"coins": -coin_change.applied, "xp": stats}

            if decision is PenaltyType.MISSION_FAIL:
                tracker.failed = True
                tracker.streak = 0
                mission_id = tracker.mission_id
                await self._trackers.delete(session, tracker)
                mission = await self._missions.get_for_update(session, mission_id)
                if mission is not None and user_id in (mission.participants or []):
                    mission.participants = [p for p in mission.participants if p != user_id]
                deleted = True
            else:
                if decision is PenaltyType.SKIP:
                    tracker.penalties_applied = [
                        *(tracker.penalties_applied or []),
                        now.isoformat(),
                    ]
                    tracker.failed = False
                tracker.remaining_quests = list(tracker.current_quests or [])
                tracker.last_updated = now

            return {
                "tracker_id": tracker_id,
                "penalty_type": decision.value if decision else None,
                "penalty_applied": decision is not None,
                "penalty_amounts": applied,
                "updated_stats": {"level": user.level, "xp": user.xp, "coins": user.coins},
                "old_level": old_level,
                "deleted": deleted,
                "status": TrackerStatus.DELETED.value if deleted else tracker.status,
            }

        result = await self._guard.run(
            "penalty.daily_refresh",
            [user_lock(user_id), tracker_lock(tracker_id)],
            work,
            context={"user_id": user_id, "tracker_id": tracker_id},
        )

        self.log_operation(
            "daily_refresh",
            user_id=user_id,
            tracker_id=tracker_id,
            penalty_type=result["penalty_type"],
            deleted=result["deleted"],
        )
        if result["penalty_applied"]:
            await self.emit_event(
                "penalty.applied",
                {
                    "user_id": user_id,
                    "tracker_id": tracker_id,
                    "penalty_type": result["penalty_type"],
                    "amounts": result["penalty_amounts"],
                },
            )
        if result["deleted"]:
            await self.emit_event(
                "tracker.deleted",
                {"user_id": user_id, "tracker_id": tracker_id, "reason": "missionFail"},
            )
        if result["updated_stats"]["level"] != result["old_level"]:
            await self.emit_event(
                "progression.level_changed",
                {
                    "user_id": user_id,
                    "old_level": result["old_level"],
                    "new_level": result["updated_stats"]["level"],
                },
            )
        return result
