"""
Sidequests
==========

One-off personal tasks with a small fixed reward. On creation a task is
classified into a difficulty and a stat, by the content generator when one
is wired in and by keyword heuristics otherwise (or when the generator
fails). Difficulty picks the reward from `sidequest.difficulty_table`.

Completion pays xp, coins and stat XP through the ProgressionLedger once;
completing an already completed sidequest returns it unchanged.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from ascendant.database.models import (
    Sidequest,
    SidequestDifficulty,
    SidequestStatus,
    StatName,
)
from ascendant.modules.missions.generator import invoke_generator
from ascendant.modules.missions.schema import parse_sidequest_verdict
from ascendant.modules.missions.service import sanitize_description
from ascendant.modules.progression.ledger import ProgressionLedger
from ascendant.modules.progression.repository import UserRepository
from ascendant.modules.progression.service import load_user
from ascendant.modules.shared.base_service import BaseService
from ascendant.modules.shared.clock import ensure_utc
from ascendant.modules.shared.exceptions import (
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from ascendant.modules.shared.guard import WriteGuard, user_lock
from ascendant.modules.shared.heuristics import classify_task
from ascendant.modules.sidequest.repository import SidequestRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.config.manager import ConfigManager
    from ascendant.core.event.bus import EventBus
    from ascendant.modules.missions.generator import SidequestClassifier
    from ascendant.modules.shared.clock import Clock


DEFAULT_DIFFICULTY_TABLE: Dict[str, Dict[str, int]] = {
    "trivial": {"xp": 2, "coins": 1, "stat_gain": 0},
    "easy": {"xp": 5, "coins": 2, "stat_gain": 1},
    "medium": {"xp": 8, "coins": 3, "stat_gain": 2},
    "hard": {"xp": 12, "coins": 5, "stat_gain": 3},
}


def sidequest_snapshot(sidequest: Sidequest) -> Dict[str, Any]:
    return {
        "id": sidequest.id,
        "user_id": sidequest.user_id,
        "title": sidequest.title,
        "description": sidequest.description,
        "deadline": sidequest.deadline,
        "difficulty": sidequest.difficulty,
        "stat": sidequest.stat,
        "xp": sidequest.xp,
        "coins": sidequest.coins,
        "status": sidequest.status,
        "completed_at": sidequest.completed_at,
    }


class SidequestService(BaseService):
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
        sidequests: SidequestRepository,
        classifier: Optional[SidequestClassifier] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._guard = guard
        self._clock = clock
        self._ledger = ledger
        self._users = users
        self._sidequests = sidequests
        self._classifier = classifier

    def _reward_for(self, difficulty: SidequestDifficulty) -> Dict[str, int]:
        table = self.get_config("sidequest.difficulty_table", DEFAULT_DIFFICULTY_TABLE)
        row = table.get(difficulty.value) or DEFAULT_DIFFICULTY_TABLE[difficulty.value]
        return {
            "xp": int(row.get("xp", 0)),
            "coins": int(row.get("coins", 0)),
            "stat_gain": int(row.get("stat_gain", 0)),
        }

    async def _classify(
        self, title: str, description: str, hint_effort: Optional[str]
    ) -> Tuple[SidequestDifficulty, StatName, str]:
        if self._classifier is not None:
            classifier = self._classifier
            try:
                raw = await invoke_generator(
                    lambda: classifier.classify_sidequest(title, description, hint_effort),
                    operation="sidequest.classify",
                )
                verdict = parse_sidequest_verdict(raw)
                return verdict.difficulty, verdict.stat, "generator"
            except (ExternalServiceError, ValidationError) as exc:
                self.log.warning(
                    "Sidequest classifier unavailable, using keyword heuristics",
                    extra={"error_type": type(exc).__name__, "error": str(exc)},
                )

        difficulty, stat = classify_task(title, description)
        return difficulty, stat, "heuristic"

    async def create_sidequest(
        self,
        user_id: int,
        title: str,
        description: str = "",
        deadline: Optional[datetime] = None,
        hint_effort: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: Blank title
            NotFoundError: User missing
        """
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("title", "title is required")
        title = sanitize_description(title)
        description = sanitize_description(description or "")

        async with self._guard.database.session() as session:
            await load_user(self._users, session, user_id)

        difficulty, stat, source = await self._classify(title, description, hint_effort)
        reward = self._reward_for(difficulty)

        async def work(session: AsyncSession) -> Dict[str, Any]:
            await load_user(self._users, session, user_id)
            sidequest = Sidequest(
                user_id=user_id,
                title=title,
                description=description,
                deadline=ensure_utc(deadline),
                difficulty=difficulty.value,
                stat=stat.value,
                xp=reward["xp"],
                coins=reward["coins"],
                status=SidequestStatus.PENDING.value,
            )
            await self._sidequests.add(session, sidequest)
            return sidequest_snapshot(sidequest)

        result = await self._guard.run(
            "sidequest.create", [user_lock(user_id)], work, context={"user_id": user_id}
        )
        self.log_operation(
            "create_sidequest",
            user_id=user_id,
            sidequest_id=result["id"],
            difficulty=result["difficulty"],
            stat=result["stat"],
            classified_by=source,
        )
        return result

    async def complete_sidequest(self, user_id: int, sidequest_id: int) -> Dict[str, Any]:
        """
        Complete a sidequest and pay its reward once.

        Returns:
            {sidequest, reward, already_completed}. reward is None when the
            sidequest was already completed.

        Raises:
            NotFoundError: No such sidequest for this user
        """
        self.validate_positive_int(sidequest_id, "sidequest_id")

        async def work(session: AsyncSession) -> Dict[str, Any]:
            sidequest = await self._sidequests.find_owned(session, user_id, sidequest_id)
            if sidequest is None:
                raise NotFoundError("Sidequest", sidequest_id)

            if sidequest.status == SidequestStatus.COMPLETED.value:
                return {
                    "sidequest": sidequest_snapshot(sidequest),
                    "reward": None,
                    "already_completed": True,
                }

            user = await load_user(self._users, session, user_id, for_update=True)
            old_level = user.level
            gain = self._reward_for(SidequestDifficulty(sidequest.difficulty))["stat_gain"]

            self._ledger.apply_xp(user, sidequest.xp)
            self._ledger.apply_coins(user, sidequest.coins)
            stat_change = self._ledger.apply_stat_xp(user, sidequest.stat, gain)

            sidequest.status = SidequestStatus.COMPLETED.value
            sidequest.completed_at = self._clock.now()

            return {
                "sidequest": sidequest_snapshot(sidequest),
                "reward": {
                    "xp": sidequest.xp,
                    "coins": sidequest.coins,
                    "stat": sidequest.stat,
                    "stat_gain": gain,
                },
                "stat_updated": stat_change.to_dict(),
                "old_user_level": old_level,
                "user_level": user.level,
                "already_completed": False,
            }

        result = await self._guard.run(
            "sidequest.complete",
            [user_lock(user_id)],
            work,
            context={"user_id": user_id, "sidequest_id": sidequest_id},
        )
        if result["already_completed"]:
            return result

        self.log_operation("complete_sidequest", user_id=user_id, sidequest_id=sidequest_id)
        await self.emit_event(
            "sidequest.completed",
            {"user_id": user_id, "sidequest_id": sidequest_id, "reward": result["reward"]},
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
        return result

    async def list_sidequests(
        self, user_id: int, status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Raises:
            ValidationError: Unknown status filter
        """
        if status is not None and status not in {s.value for s in SidequestStatus}:
            raise ValidationError(
                "status", f"status must be 'pending' or 'completed', got {status!r}"
            )
        async with self._guard.database.session() as session:
            await load_user(self._users, session, user_id)
            items = await self._sidequests.find_for_user(session, user_id, status)
            return [sidequest_snapshot(item) for item in items]
