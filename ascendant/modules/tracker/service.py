"""
QuestTracker
============

Purpose
-------
A tracker's daily completion state machine and the client operations that
create and remove trackers.

Operations
----------
- complete_quest(user_id, tracker_id, quest_id)
- join_mission(user_id, mission_id)
- abandon_tracker(user_id, tracker_id)
- delete_tracker(user_id, tracker_id)
- list_trackers(user_id, status=None)
- get_tracker(user_id, tracker_id)

Lifecycle
---------
ACTIVE -> COMPLETED once daycount reaches duration (row kept, reviewable).
ACTIVE -> DELETED on abandon / delete / missionFail (row removed).
Only ACTIVE trackers accept quest completions.

Rewards
-------
On daily completion the tracker pays its reward: in full on the final day,
otherwise `reward // tracker.partial_reward_divisor` (a quarter by default).
Stat XP for the quest itself is paid on every completion.

Concurrency
-----------
Mutations hold `user:{id}` then `tracker:{id}` and run in one transaction,
so the Tracker and User rows commit together or not at all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ascendant.database.models import Tracker, TrackerStatus
from ascendant.modules.missions.repository import MissionRepository, QuestRepository
from ascendant.modules.progression.ledger import ProgressionLedger
from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.progression.service import load_user
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from ascendant.modules.shared.guard import WriteGuard, mission_lock, tracker_lock, user_lock
from ascendant.modules.tracker.repository import TrackerRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus
    from ascendant.modules.shared.clock import Clock


def tracker_snapshot(tracker: Tracker) -> Dict[str, Any]:
    return {
        "id": tracker.id,
        "user_id": tracker.user_id,
        "mission_id": tracker.mission_id,
        "title": tracker.title,
        "description": tracker.description,
        "duration": tracker.duration,
        "reward": dict(tracker.reward or {}),
        "penalty": dict(tracker.penalty or {}),
        "rank": tracker.rank,
        "current_quests": list(tracker.current_quests or []),
        "remaining_quests": list(tracker.remaining_quests or []),
        "quest_completion": {k: list(v) for k, v in (tracker.quest_completion or {}).items()},
        "streak": tracker.streak,
        "daycount": tracker.daycount,
        "last_updated": tracker.last_updated,
        "last_completed": tracker.last_completed,
        "penalties_applied": list(tracker.penalties_applied or []),
        "failed": tracker.failed,
        "status": tracker.status,
        "daily_completed": tracker.daily_completed,
    }


async def load_owned_tracker(
    trackers: TrackerRepository,
    session: AsyncSession,
    user_id: int,
    tracker_id: int,
    action: str,
    *,
    for_update: bool = True,
) -> Tracker:
    """
    Raises:
        NotFoundError: If the tracker does not exist
        InvalidOperationError: If it belongs to another user
    """
    if for_update:
        tracker = await trackers.get_for_update(session, tracker_id)
    else:
        tracker = await trackers.get(session, tracker_id)
    if tracker is None:
        raise NotFoundError("Tracker", tracker_id)
    if tracker.user_id != user_id:
        raise InvalidOperationError(action, "tracker belongs to another user")
    return tracker


def require_active(tracker: Tracker, action: str) -> None:
    if tracker.status != TrackerStatus.ACTIVE.value:
        raise InvalidOperationError(action, f"tracker {tracker.id} is {tracker.status}")


class QuestTrackerService(BaseService):
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
        quests: QuestRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._clock = clock
        self._ledger = ledger
        self._users = users
        self._trackers = trackers
        self._missions = missions
        self._quests = quests

    # =========================================================================
    # QUEST COMPLETION
    # =========================================================================

    async def complete_quest(self, user_id: int, tracker_id: int, quest_id: int) -> Dict[str, Any]:
        """
        Mark one of today's quests done and settle its rewards.

        Raises:
            NotFoundError: Tracker or quest missing, or quest not in today's
                remaining set
            InvalidOperationError: Tracker not owned or not active
        """
        self.validate_positive_int(quest_id, "quest_id")

        async def work(session: AsyncSession) -> Dict[str, Any]:
            tracker = await load_owned_tracker(
                self._trackers, session, user_id, tracker_id, "complete_quest"
            )
            require_active(tracker, "complete_quest")

            remaining = list(tracker.remaining_quests or [])
            if quest_id not in remaining:
                raise NotFoundError("Quest", quest_id, "not in today's remaining set")

            quest = await self._quests.get(session, quest_id)
            if quest is None:
                raise NotFoundError("Quest", quest_id)

            user = await load_user(self._users, session, user_id, for_update=True)
            now = self._clock.now()
            today = self._clock.today_key()

            remaining.remove(quest_id)
            tracker.remaining_quests = remaining
            completion = {k: list(v) for k, v in (tracker.quest_completion or {}).items()}
            completion.setdefault(today, []).append(quest_id)
            tracker.quest_completion = completion

            stat_change = self._ledger.apply_stat_xp(user, quest.stat_affected, quest.xp)
            old_level = user.level

            daily_completed = not remaining
            mission_completed = False
            reward_granted = {"xp": 0, "coins": 0}

            if daily_completed:
                tracker.streak += 1
                tracker.daycount = min(tracker.duration, tracker.daycount + 1)
                tracker.last_completed = now
                mission_completed = tracker.daycount >= tracker.duration

                reward_granted = self._daily_reward(tracker.reward or {}, mission_completed)
                self._ledger.apply_xp(user, reward_granted["xp"])
                self._ledger.apply_coins(user, reward_granted["coins"])

                if mission_completed:
                    completed_ids = list(user.completed_tracker_ids or [])
                    if tracker.id not in completed_ids:
                        completed_ids.append(tracker.id)
                    user.completed_tracker_ids = completed_ids
                    tracker.status = TrackerStatus.COMPLETED.value

            return {
                "quest_id": quest_id,
                "tracker_id": tracker.id,
                "stat_updated": stat_change.to_dict(),
                "stat_levels_gained": stat_change.levels_gained,
                "xp": user.xp,
                "coins": user.coins,
                "user_level": user.level,
                "old_user_level": old_level,
                "streak": tracker.streak,
                "daycount": tracker.daycount,
                "daily_completed": daily_completed,
                "mission_completed": mission_completed,
                "reward_granted": reward_granted,
                "status": tracker.status,
            }

        result = await self._guard.run(
            "tracker.complete_quest",
            [user_lock(user_id), tracker_lock(tracker_id)],
            work,
            context={"user_id": user_id, "tracker_id": tracker_id, "quest_id": quest_id},
        )

        self.log_operation(
            "complete_quest",
            user_id=user_id,
            tracker_id=tracker_id,
            quest_id=quest_id,
            daily_completed=result["daily_completed"],
            mission_completed=result["mission_completed"],
        )
        await self._emit_completion_events(user_id, result)
        return result

    def _daily_reward(self, reward: Dict[str, Any], final_day: bool) -> Dict[str, int]:
        xp = int(reward.get("xp") or 0)
        coins = int(reward.get("coins") or 0)
        if final_day:
            return {"xp": xp, "coins": coins}
        divisor = int(self.get_config("tracker.partial_reward_divisor", 4))
        return {"xp": xp // divisor, "coins": coins // divisor}

    async def _emit_completion_events(self, user_id: int, result: Dict[str, Any]) -> None:
        payload = {"user_id": user_id, "tracker_id": result["tracker_id"]}
        await self.emit_event(
            "tracker.quest_completed",
            {**payload, "quest_id": result["quest_id"], "stat": result["stat_updated"]},
        )
        if result["daily_completed"]:
            await self.emit_event(
                "tracker.daily_completed",
                {**payload, "streak": result["streak"], "daycount": result["daycount"]},
            )
        if result["mission_completed"]:
            await self.emit_event(
                "tracker.mission_completed", {**payload, "reward": result["reward_granted"]}
            )
        if result["user_level"] != result["old_user_level"]:
            await self.emit_event(
                "progression.level_changed",
                {
                    "user_id": user_id,
                    "old_level": result["old_user_level"],
                    "new_level": result["user_level"],
                },
            )

    # =========================================================================
    # JOIN / ABANDON / DELETE
    # =========================================================================

    async def join_mission(self, user_id: int, mission_id: int) -> Dict[str, Any]:
        """
        Start a tracker for a mission.

        Raises:
            NotFoundError: User or mission missing
            InvalidOperationError: User already has a tracker for this mission
        """
        self.validate_positive_int(mission_id, "mission_id")

        async def work(session: AsyncSession) -> Dict[str, Any]:
            mission = await self._missions.get_for_update(session, mission_id)
            if mission is None:
                raise NotFoundError("Mission", mission_id)
            user = await load_user(self._users, session, user_id, for_update=True)

            if await self._trackers.find_for_user_mission(session, user_id, mission_id):
                raise InvalidOperationError("join_mission", "mission already joined")

            now = self._clock.now()
            quest_ids = list(mission.quest_ids or [])
            tracker = Tracker(
                user_id=user_id,
                mission_id=mission_id,
                title=mission.title,
                description=mission.refined_description or mission.description,
                duration=mission.duration,
                reward=dict(mission.reward),
                penalty={k: dict(v) for k, v in mission.penalty.items()},
                rank=mission.rank,
                current_quests=list(quest_ids),
                remaining_quests=list(quest_ids),
                quest_completion={self._clock.today_key(): []},
                streak=0,
                daycount=0,
                last_updated=now,
                last_completed=now,
                penalties_applied=[],
                failed=False,
                status=TrackerStatus.ACTIVE.value,
            )
            await self._trackers.add(session, tracker)

            participants = list(mission.participants or [])
            if user_id not in participants:
                participants.append(user_id)
            mission.participants = participants
            user.total_missions += 1

            return tracker_snapshot(tracker)

        result = await self._guard.run(
            "tracker.join_mission",
            [user_lock(user_id), mission_lock(mission_id)],
            work,
            context={"user_id": user_id, "mission_id": mission_id},
        )
        self.log_operation(
            "join_mission", user_id=user_id, mission_id=mission_id, tracker_id=result["id"]
        )
        await self.emit_event(
            "tracker.joined",
            {"user_id": user_id, "mission_id": mission_id, "tracker_id": result["id"]},
        )
        return result

    async def abandon_tracker(self, user_id: int, tracker_id: int) -> Dict[str, Any]:
        """
        Give up an active tracker. No penalty is applied.

        Raises:
            NotFoundError: Tracker missing
            InvalidOperationError: Not owned or not active
        """
        return await self._remove(user_id, tracker_id, "abandon_tracker", require_active_state=True)

    async def delete_tracker(self, user_id: int, tracker_id: int) -> Dict[str, Any]:
        """
        Remove an active or completed tracker. Completion history already
        recorded on the user is kept.

        Raises:
            NotFoundError: Tracker missing
            InvalidOperationError: Not owned
        """
        return await self._remove(user_id, tracker_id, "delete_tracker", require_active_state=False)

    async def _remove(
        self, user_id: int, tracker_id: int, action: str, *, require_active_state: bool
    ) -> Dict[str, Any]:
        async def work(session: AsyncSession) -> Dict[str, Any]:
            tracker = await load_owned_tracker(self._trackers, session, user_id, tracker_id, action)
            if require_active_state:
                require_active(tracker, action)

            previous_status = tracker.status
            mission_id = tracker.mission_id
            await self._trackers.delete(session, tracker)

            mission = await self._missions.get_for_update(session, mission_id)
            if mission is not None and user_id in (mission.participants or []):
                mission.participants = [p for p in mission.participants if p != user_id]

            return {
                "tracker_id": tracker_id,
                "mission_id": mission_id,
                "previous_status": previous_status,
                "status": TrackerStatus.DELETED.value,
                "deleted": True,
            }

        result = await self._guard.run(
            f"tracker.{action}",
            [user_lock(user_id), tracker_lock(tracker_id)],
            work,
            context={"user_id": user_id, "tracker_id": tracker_id},
        )
        self.log_operation(action, user_id=user_id, tracker_id=tracker_id)
        await self.emit_event(
            "tracker.deleted", {"user_id": user_id, "tracker_id": tracker_id, "reason": action}
        )
        return result

    # =========================================================================
    # READS
    # =========================================================================

    async def list_trackers(
        self, user_id: int, status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Raises:
            ValidationError: Unknown status filter
        """
        if status is not None and status not in (
            TrackerStatus.ACTIVE.value,
            TrackerStatus.COMPLETED.value,
        ):
            raise ValidationError("status", f"status must be 'active' or 'completed', got {status!r}")

        async with self._guard.database.session() as session:
            await load_user(self._users, session, user_id)
            rows = await self._trackers.find_for_user(session, user_id, status)
        return [tracker_snapshot(row) for row in rows]

    async def get_tracker(self, user_id: int, tracker_id: int) -> Dict[str, Any]:
        async with self._guard.database.session() as session:
            tracker = await load_owned_tracker(
                self._trackers, session, user_id, tracker_id, "get_tracker", for_update=False
            )
        return tracker_snapshot(tracker)
