"""
Content generator boundary.

Purpose
-------
Missions, quest upgrades and sidequest classification come from a
pluggable generator. This module defines the protocol, two adapters and
the call wrapper every service uses.

Design Notes
------------
- Generators return *raw* payloads (dict or text with JSON). Services
  validate them with `missions.schema` before writing anything.
- `invoke_generator` applies the configured timeout and converts failures:
  timeout or transport error -> ExternalServiceError; a ValidationError
  raised by the generator itself passes through unchanged.
- Generator calls happen before any transaction opens, so a slow model
  never holds row locks.

Adapters
--------
- StaticContentGenerator: deterministic content for local development and
  tests. No network.
- OpenAIContentGenerator: chat completions on the `openai` async client,
  prompted for a single JSON object.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, TypeVar

from openai import AsyncOpenAI, OpenAIError

from ascendant.core.config.config import Config
from ascendant.core.logging.logger import get_logger
from ascendant.database.models.enums import Rank, SpecialReward
from ascendant.modules.shared.exceptions import AscendantError, ExternalServiceError
from ascendant.modules.shared.heuristics import classify_task, guess_stat

logger = get_logger(__name__)

T = TypeVar("T")

GENERATOR_SERVICE = "content_generator"


@dataclass(frozen=True)
class MissionRequest:
    """
    Input for mission generation.

    For custom missions `tasks` holds the user's quest titles; the generator
    must return exactly one quest per task.
    """

    description: str
    days: int
    tasks: Sequence[str] = field(default_factory=tuple)

    @property
    def is_custom(self) -> bool:
        return bool(self.tasks)


class ContentGenerator(Protocol):
    async def generate_mission(self, request: MissionRequest) -> Any: ...

    async def upgrade_quests(
        self, existing_quests: List[Dict[str, Any]], max_xp: int, streak: int
    ) -> Any: ...


class SidequestClassifier(Protocol):
    async def classify_sidequest(
        self, title: str, description: str, hint_effort: Optional[str]
    ) -> Any: ...


async def invoke_generator(
    call: Callable[[], Awaitable[T]],
    *,
    timeout: Optional[float] = None,
    operation: str,
) -> T:
    """
    Await a generator call under a timeout.

    Raises:
        ExternalServiceError: On timeout or any non-domain failure
        AscendantError: Domain errors raised by the generator, unchanged
    """
    limit = Config.GENERATOR_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(call(), timeout=limit)
    except asyncio.TimeoutError as exc:
        logger.warning(
            "Content generator timed out",
            extra={"operation": operation, "timeout_seconds": limit},
        )
        raise ExternalServiceError(GENERATOR_SERVICE, f"timed out after {limit}s") from exc
    except AscendantError:
        raise
    except Exception as exc:
        logger.error(
            "Content generator failed",
            extra={"operation": operation, "error_type": type(exc).__name__, "error": str(exc)},
            exc_info=True,
        )
        raise ExternalServiceError(GENERATOR_SERVICE, str(exc) or type(exc).__name__) from exc


# =============================================================================
# STATIC GENERATOR
# =============================================================================


def rank_for_days(days: int) -> Rank:
    if days <= 3:
        return Rank.E
    if days <= 7:
        return Rank.D
    if days <= 14:
        return Rank.C
    if days <= 21:
        return Rank.B
    if days <= 27:
        return Rank.A
    return Rank.S


SPECIAL_BY_RANK = {Rank.B: SpecialReward.COMMON, Rank.A: SpecialReward.RARE, Rank.S: SpecialReward.EPIC}


class StaticContentGenerator:
    """Deterministic generator: same input, same payload."""

    default_quest_templates = (
        "Spend 30 focused minutes on: {topic}",
        "Write down one lesson learned about: {topic}",
        "Review today's progress on: {topic}",
    )

    async def generate_mission(self, request: MissionRequest) -> Dict[str, Any]:
        rank = rank_for_days(request.days)
        step = rank.index
        topic = request.description.strip()
        short_topic = topic if len(topic) <= 60 else f"{topic[:57]}..."

        if request.is_custom:
            titles = list(request.tasks)
        else:
            titles = [template.format(topic=short_topic) for template in self.default_quest_templates]

        quests = [
            {
                "title": title,
                "statAffected": guess_stat(f"{title} {topic}").value,
                "xp": min(50, 10 + 5 * step + 2 * index),
            }
            for index, title in enumerate(titles)
        ]
        special = SPECIAL_BY_RANK.get(rank)

        return {
            "title": f"{request.days}-Day Mission: {short_topic}",
            "refinedDescription": f"Over {request.days} days, commit to: {topic}",
            "quests": quests,
            "reward": {
                "xp": min(500, 50 + 15 * request.days),
                "coins": min(100, 10 + 3 * request.days),
                "specialReward": special.value if special else None,
            },
            "penalty": {
                "missionFail": {"coins": min(50, 10 + 8 * step), "stats": min(5, 1 + step)},
                "skip": {"coins": min(20, 5 + 3 * step), "stats": min(2, step // 2)},
            },
            "rank": rank.value,
        }

    async def upgrade_quests(
        self, existing_quests: List[Dict[str, Any]], max_xp: int, streak: int
    ) -> Dict[str, Any]:
        return {
            "quests": [
                {
                    "title": f"{quest['title']} (advanced)",
                    "statAffected": quest["stat_affected"],
                    "xp": min(50, int(quest["xp"]) + 5),
                }
                for quest in existing_quests
            ]
        }

    async def classify_sidequest(
        self, title: str, description: str, hint_effort: Optional[str]
    ) -> Dict[str, str]:
        difficulty, stat = classify_task(title, description)
        return {"difficulty": difficulty.value, "stat": stat.value}


# =============================================================================
# OPENAI GENERATOR
# =============================================================================

MISSION_PROMPT = """You are a mission generator for a life gamification app.
Return ONLY one JSON object with these fields:
- title: mission title, 5-10 words
- refinedDescription: polished description, 50-100 words
- quests: 1-4 daily quests, each {{"title": str, "statAffected": one of strength, intelligence, agility, endurance, charisma, "xp": integer 1-50}}
- reward: {{"xp": integer 50-500, "coins": integer 10-100, "specialReward": "common" | "rare" | "epic" | null}}
- penalty: {{"missionFail": {{"coins": 10-50, "stats": 1-5}}, "skip": {{"coins": 5-20, "stats": 0-2}}}}
- rank: one of E, D, C, B, A, S (S is hardest)
specialReward is common/rare/epic for ranks B/A/S and null otherwise.

Description: {description}
Number of days: {days}
{task_block}"""

CUSTOM_TASK_BLOCK = """Use exactly these quests, in this order, with titles unchanged and nothing added:
{tasks}"""

UPGRADE_PROMPT = """You are a quest designer for a life gamification app. The user has a streak of {streak} days.
Create harder versions of the following quests, keeping each original title as a base.
Do not add or remove quests. Aim for about {max_xp} xp per quest; each xp must be an integer between 1 and 50.
Return ONLY one JSON object: {{"quests": [{{"title": str, "statAffected": str, "xp": int}}, ...]}}
Quests: {quests}"""

SIDEQUEST_PROMPT = """Classify a short task for a gamified productivity app.
Return ONLY one JSON object: {{"difficulty": "trivial" | "easy" | "medium" | "hard", "stat": "strength" | "intelligence" | "agility" | "endurance" | "charisma"}}
Task title: {title}
Description: {description}
Effort hint: {hint}"""


class OpenAIContentGenerator:
    """
    Generator backed by the OpenAI chat completions API.

    Args:
        api_key: Defaults to OPENAI_API_KEY
        model: Defaults to OPENAI_MODEL
        client: Pre-built AsyncOpenAI client (tests inject a mock)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.model = model or Config.OPENAI_MODEL
        if client is None:
            key = api_key or Config.OPENAI_API_KEY
            if not key:
                raise ExternalServiceError("openai", "OPENAI_API_KEY environment variable must be set")
            client = AsyncOpenAI(
                api_key=key,
                timeout=timeout if timeout is not None else Config.GENERATOR_TIMEOUT_SECONDS,
            )
        self._client = client

    async def _complete(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You produce strictly valid JSON."},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            raise ExternalServiceError("openai", f"OpenAI API error: {exc}") from exc

        if not response.choices or not response.choices[0].message:
            raise ExternalServiceError("openai", "OpenAI API returned no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ExternalServiceError("openai", "OpenAI API returned empty response content")
        return content.strip()

    async def generate_mission(self, request: MissionRequest) -> str:
        task_block = ""
        if request.is_custom:
            task_block = CUSTOM_TASK_BLOCK.format(
                tasks="\n".join(f"- {task}" for task in request.tasks)
            )
        prompt = MISSION_PROMPT.format(
            description=request.description, days=request.days, task_block=task_block
        )
        return await self._complete(prompt)

    async def upgrade_quests(
        self, existing_quests: List[Dict[str, Any]], max_xp: int, streak: int
    ) -> str:
        quests = json.dumps(
            [
                {"title": q["title"], "statAffected": q["stat_affected"], "xp": q["xp"]}
                for q in existing_quests
            ]
        )
        return await self._complete(
            UPGRADE_PROMPT.format(streak=streak, max_xp=max_xp, quests=quests)
        )

    async def classify_sidequest(
        self, title: str, description: str, hint_effort: Optional[str]
    ) -> str:
        return await self._complete(
            SIDEQUEST_PROMPT.format(title=title, description=description or "", hint=hint_effort or "")
        )


def build_content_generator(backend: Optional[str] = None) -> ContentGenerator:
    """Generator for the configured GENERATOR_BACKEND (`static` or `openai`)."""
    backend = (backend or Config.GENERATOR_BACKEND).lower()
    if backend == "openai":
        return OpenAIContentGenerator()
    if backend == "static":
        return StaticContentGenerator()
    from ascendant.core.exceptions import ConfigurationError

    raise ConfigurationError("GENERATOR_BACKEND", f"Unknown generator backend '{backend}'")
