"""
MissionService
==============

Purpose
-------
Create missions from a free-text goal (generated) or from the user's own
task list (custom), and manage the shared mission catalog.

Flow
----
1. Validate and normalize input (no I/O).
2. Call the content generator under a timeout, outside any transaction.
3. Parse the payload against the strict schema.
4. In one transaction: insert Quest rows, then the Mission.

Operations
----------
- generate_mission(user_id, description, days)
- create_custom_mission(user_id, tasks, days, title=None, description=None)
- delete_mission(user_id, mission_id)
- list_public_missions(limit)
- get_mission(mission_id)
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ascendant.database.models import Mission, Quest
from ascendant.modules.missions.generator import MissionRequest, invoke_generator
from ascendant.modules.missions.repository import MissionRepository, QuestRepository
from ascendant.modules.missions.schema import MissionDraft, parse_mission
from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.progression.service import load_user
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from ascendant.modules.shared.guard import WriteGuard, mission_lock, user_lock
from ascendant.modules.tracker.repository import TrackerRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus
    from ascendant.modules.missions.generator import ContentGenerator

_CONTROL_WS_RE = re.compile(r"[\r\n\t]+")


def sanitize_description(text: str) -> str:
    """Newlines and tabs become single spaces; surrounding whitespace is dropped."""
    return _CONTROL_WS_RE.sub(" ", text).strip()


def mission_snapshot(mission: Mission, quests: Optional[Sequence[Quest]] = None) -> Dict[str, Any]:
    snapshot: Dict[str, Any] = {
        "id": mission.id,
        "title": mission.title,
        "description": mission.description,
        "refined_description": mission.refined_description,
        "duration": mission.duration,
        "quest_ids": list(mission.quest_ids or []),
        "reward": dict(mission.reward or {}),
        "penalty": dict(mission.penalty or {}),
        "rank": mission.rank,
        "participants": list(mission.participants or []),
        "public": mission.public,
        "is_custom": mission.is_custom,
        "creator_id": mission.creator_id,
    }
    if quests is not None:
        snapshot["quests"] = [quest.to_dict() for quest in quests]
    return snapshot


class MissionService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        guard: WriteGuard,
        generator: ContentGenerator,
        users: UserRepository,
        missions: MissionRepository,
        quests: QuestRepository,
        trackers: TrackerRepository,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._generator = generator
        self._users = users
        self._missions = missions
        self._quests = quests
        self._trackers = trackers

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _validate_days(self, days: Any) -> int:
        return self.validate_range(
            days,
            "days",
            int(self.get_config("missions.min_days", 1)),
            int(self.get_config("missions.max_days", 30)),
        )

    def _validate_description(self, description: Any) -> str:
        if not isinstance(description, str):
            raise ValidationError("description", "description must be a string")
        cleaned = sanitize_description(description)
        minimum = int(self.get_config("missions.min_description_length", 10))
        if len(cleaned) < minimum:
            raise ValidationError(
                "description", f"description must be at least {minimum} characters"
            )
        return cleaned

    def _validate_tasks(self, tasks: Any) -> List[str]:
        max_quests = int(self.get_config("missions.max_quests", 4))
        if not isinstance(tasks, (list, tuple)) or not 1 <= len(tasks) <= max_quests:
            raise ValidationError("tasks", f"provide between 1 and {max_quests} tasks")
        for task in tasks:
            if not isinstance(task, str) or not task.strip():
                raise ValidationError("tasks", "every task must be a non-empty string")
        return list(tasks)

    # =========================================================================
    # CREATION
    # =========================================================================

    async def generate_mission(self, user_id: int, description: str, days: int) -> Dict[str, Any]:
        """
        Generate a mission from a free-text goal and save it publicly.

        Raises:
            ValidationError: Bad input or generator payload
            ExternalServiceError: Generator failure or timeout
            NotFoundError: Unknown user
        """
        cleaned = self._validate_description(description)
        days = self._validate_days(days)
        request = MissionRequest(description=cleaned, days=days)

        raw = await invoke_generator(
            lambda: self._generator.generate_mission(request), operation="mission.generate"
        )
        draft = parse_mission(raw)

        return await self._persist(
            user_id,
            draft,
            days=days,
            title=draft.title,
            description=cleaned,
            quest_titles=[quest.title for quest in draft.quests],
            is_custom=False,
        )

    async def create_custom_mission(
        self,
        user_id: int,
        tasks: Sequence[str],
        days: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build a mission around the user's own tasks. Task titles are kept
        verbatim; the generator only assigns stats, XP and the envelope.

        Raises:
            ValidationError: Bad input, bad payload, or the generator
                returned a different number of quests than tasks
            ExternalServiceError: Generator failure or timeout
        """
        task_titles = self._validate_tasks(tasks)
        days = self._validate_days(days)
        if title is not None and (not isinstance(title, str) or not title.strip()):
            raise ValidationError("title", "title must be a non-empty string")
        cleaned = sanitize_description(description) if description else "; ".join(task_titles)
        request = MissionRequest(description=cleaned, days=days, tasks=tuple(task_titles))

        raw = await invoke_generator(
            lambda: self._generator.generate_mission(request), operation="mission.custom"
        )
        draft = parse_mission(raw)
        if len(draft.quests) != len(task_titles):
            raise ValidationError(
                "generator_output",
                f"expected {len(task_titles)} quests for {len(task_titles)} tasks, "
                f"got {len(draft.quests)}",
            )

        return await self._persist(
            user_id,
            draft,
            days=days,
            title=title.strip() if title else draft.title,
            description=cleaned,
            quest_titles=task_titles,
            is_custom=True,
        )

    async def _persist(
        self,
        user_id: int,
        draft: MissionDraft,
        *,
        days: int,
        title: str,
        description: str,
        quest_titles: Sequence[str],
        is_custom: bool,
    ) -> Dict[str, Any]:
        async def work(session: AsyncSession) -> Dict[str, Any]:
            await load_user(self._users, session, user_id)

            quests = [
                Quest(title=quest_title, stat_affected=quest.stat_affected.value, xp=quest.xp)
                for quest_title, quest in zip(quest_titles, draft.quests)
            ]
            await self._quests.add_many(session, quests)

            mission = Mission(
                title=title,
                description=description,
                refined_description=draft.refined_description,
                duration=days,
                quest_ids=[quest.id for quest in quests],
                reward=draft.reward_envelope(),
                penalty=draft.penalty_envelope(),
                rank=draft.rank.value,
                participants=[],
                public=True,
                is_custom=is_custom,
                creator_id=user_id,
            )
            await self._missions.add(session, mission)
            for quest in quests:
                quest.mission_id = mission.id
            return mission_snapshot(mission, quests)

        result = await self._guard.run(
            "mission.create", [user_lock(user_id)], work, context={"user_id": user_id}
        )
        self.log_operation(
            "create_mission",
            user_id=user_id,
            mission_id=result["id"],
            is_custom=is_custom,
            rank=result["rank"],
        )
        await self.emit_event(
            "mission.created",
            {"user_id": user_id, "mission_id": result["id"], "is_custom": is_custom},
        )
        return result

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def delete_mission(self, user_id: int, mission_id: int) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: Mission missing
            InvalidOperationError: Caller is not the creator, or trackers
                still reference the mission
        """

        async def work(session: AsyncSession) -> Dict[str, Any]:
            mission = await self._missions.get_for_update(session, mission_id)
            if mission is None:
                raise NotFoundError("Mission", mission_id)
            if mission.creator_id != user_id:
                raise InvalidOperationError("delete_mission", "only the creator can delete a mission")
            if await self._trackers.count_for_mission(session, mission_id):
                raise InvalidOperationError("delete_mission", "mission still has trackers")

            quests = await self._quests.get_many(session, mission.quest_ids or [])
            for quest in quests:
                await self._quests.delete(session, quest)
            await self._missions.delete(session, mission)
            return {"mission_id": mission_id, "deleted": True, "quests_deleted": len(quests)}

        result = await self._guard.run(
            "mission.delete",
            [user_lock(user_id), mission_lock(mission_id)],
            work,
            context={"user_id": user_id, "mission_id": mission_id},
        )
        self.log_operation("delete_mission", user_id=user_id, mission_id=mission_id)
        return result

    async def list_public_missions(self, limit: int = 50) -> List[Dict[str, Any]]:
        limit = max(1, min(int(limit), 100))
        async with self._guard.database.session() as session:
            missions = await self._missions.list_public(session, limit)
        return [mission_snapshot(mission) for mission in missions]

    async def get_mission(self, mission_id: int) -> Dict[str, Any]:
        async with self._guard.database.session() as session:
            mission = await self._missions.get(session, mission_id)
            if mission is None:
                raise NotFoundError("Mission", mission_id)
            quests = await self._quests.get_ordered(session, mission.quest_ids or [])
        return mission_snapshot(mission, quests)
