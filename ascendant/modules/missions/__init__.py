"""Missions: content generator boundary, schema and mission catalog."""

from ascendant.modules.missions.generator import (
    ContentGenerator,
    MissionRequest,
    OpenAIContentGenerator,
    StaticContentGenerator,
    build_content_generator,
    invoke_generator,
)
from ascendant.modules.missions.repository import MissionRepository, QuestRepository
from ascendant.modules.missions.schema import MissionDraft, UpgradeDraft, parse_mission, parse_upgrade

__all__ = [
    "ContentGenerator",
    "MissionDraft",
    "MissionRepository",
    "MissionRequest",
    "OpenAIContentGenerator",
    "QuestRepository",
    "StaticContentGenerator",
    "UpgradeDraft",
    "build_content_generator",
    "invoke_generator",
    "parse_mission",
    "parse_upgrade",
]
