"""
Content-generator output schema.

Everything a generator returns passes through these pydantic models before
anything is written. A payload either parses completely or the operation
fails with a domain ValidationError; there is no partial acceptance.

Accepted raw forms: a dict, or text containing one JSON object, optionally
inside a ```json fenced block.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

from ascendant.database.models.enums import Rank, SidequestDifficulty, SpecialReward, StatName
from ascendant.modules.shared.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]+?)\n?```", re.IGNORECASE)


class _DraftModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class QuestDraft(_DraftModel):
    title: str = Field(..., min_length=1, max_length=255)
    stat_affected: StatName = Field(..., alias="statAffected")
    xp: StrictInt = Field(..., ge=1, le=50)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class RewardDraft(_DraftModel):
    xp: StrictInt = Field(..., ge=50, le=500)
    coins: StrictInt = Field(..., ge=10, le=100)
    special_reward: Optional[SpecialReward] = Field(None, alias="specialReward")


class MissionFailPenalty(_DraftModel):
    coins: StrictInt = Field(..., ge=10, le=50)
    stats: StrictInt = Field(..., ge=1, le=5)


class SkipPenalty(_DraftModel):
    coins: StrictInt = Field(..., ge=5, le=20)
    stats: StrictInt = Field(..., ge=0, le=2)


class PenaltyDraft(_DraftModel):
    mission_fail: MissionFailPenalty = Field(..., alias="missionFail")
    skip: SkipPenalty


class MissionDraft(_DraftModel):
    title: str = Field(..., min_length=1, max_length=255)
    refined_description: str = Field(..., min_length=1, alias="refinedDescription")
    quests: List[QuestDraft] = Field(..., min_length=1, max_length=4)
    reward: RewardDraft
    penalty: PenaltyDraft
    rank: Rank

    @field_validator("title", "refined_description")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    def reward_envelope(self) -> Dict[str, Any]:
        return {
            "xp": self.reward.xp,
            "coins": self.reward.coins,
            "specialReward": self.reward.special_reward.value if self.reward.special_reward else None,
        }

    def penalty_envelope(self) -> Dict[str, Dict[str, int]]:
        return {
            "missionFail": {
                "coins": self.penalty.mission_fail.coins,
                "stats": self.penalty.mission_fail.stats,
            },
            "skip": {"coins": self.penalty.skip.coins, "stats": self.penalty.skip.stats},
        }


class UpgradeDraft(_DraftModel):
    quests: List[QuestDraft] = Field(..., min_length=1, max_length=4)


def extract_json(raw: Any) -> Any:
    """
    Pull the JSON value out of a generator response.

    Raises:
        ValidationError: If the text holds no parseable JSON
    """
    if isinstance(raw, (dict, list)):
        return raw
    if not isinstance(raw, str):
        raise ValidationError(
            "generator_output", f"expected a JSON object or text, got {type(raw).__name__}"
        )

    match = _FENCE_RE.search(raw)
    text = match.group(1) if match else raw
    try:
        return json.loads(text.strip())
    except json.JSONDecodeError as exc:
        raise ValidationError("generator_output", f"invalid JSON: {exc.msg}") from exc


def parse_payload(raw: Any, model: Type[ModelT]) -> ModelT:
    """
    Validate a raw generator payload against `model`.

    A bare list is accepted for UpgradeDraft and treated as its `quests`.

    Raises:
        ValidationError: On any schema violation
    """
    data = extract_json(raw)
    if model is UpgradeDraft and isinstance(data, list):
        data = {"quests": data}
    if not isinstance(data, dict):
        raise ValidationError("generator_output", "expected a JSON object")

    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        raise ValidationError(
            "generator_output",
            f"{location}: {first.get('msg')} ({exc.error_count()} error(s))",
        ) from exc


def parse_mission(raw: Any) -> MissionDraft:
    return parse_payload(raw, MissionDraft)


def parse_upgrade(raw: Any) -> UpgradeDraft:
    return parse_payload(raw, UpgradeDraft)


class SidequestVerdict(_DraftModel):
    difficulty: SidequestDifficulty
    stat: StatName


def parse_sidequest_verdict(raw: Any) -> SidequestVerdict:
    return parse_payload(raw, SidequestVerdict)
