"""
Unit tests for the generator output schema.

A payload either parses completely or raises ValidationError.
"""

import copy
import json

import pytest

from ascendant.database.models import Rank, SidequestDifficulty, StatName
from ascendant.modules.missions.schema import (
    extract_json,
    parse_mission,
    parse_sidequest_verdict,
    parse_upgrade,
)
from ascendant.modules.shared.exceptions import ValidationError

VALID_MISSION = {
    "title": "Build a Morning Routine",
    "refinedDescription": "Wake early and train body and mind for a week.",
    "quests": [
        {"title": "Run 2km", "statAffected": "strength", "xp": 12},
        {"title": "Read 20 pages", "statAffected": "intelligence", "xp": 8},
    ],
    "reward": {"xp": 150, "coins": 30, "specialReward": None},
    "penalty": {"missionFail": {"coins": 20, "stats": 2}, "skip": {"coins": 8, "stats": 1}},
    "rank": "D",
}


def mutated(path, value):
    payload = copy.deepcopy(VALID_MISSION)
    target = payload
    for key in path[:-1]:
        target = target[key]
    target[path[-1]] = value
    return payload


@pytest.mark.unit
class TestParseMission:
    def test_valid_dict(self):
        # Act
        draft = parse_mission(VALID_MISSION)

        # Assert
        assert draft.title == "Build a Morning Routine"
        assert draft.rank is Rank.D
        assert [q.stat_affected for q in draft.quests] == [StatName.STRENGTH, StatName.INTELLIGENCE]
        assert draft.reward_envelope() == {"xp": 150, "coins": 30, "specialReward": None}
        assert draft.penalty_envelope()["missionFail"] == {"coins": 20, "stats": 2}

    def test_fenced_text(self):
        text = f"Here you go:\n```json\n{json.dumps(VALID_MISSION)}\n```"

        draft = parse_mission(text)

        assert len(draft.quests) == 2

    def test_bare_json_text(self):
        assert parse_mission(json.dumps(VALID_MISSION)).rank is Rank.D

    @pytest.mark.parametrize(
        "path, value",
        [
            (("quests", 0, "xp"), 51),
            (("quests", 0, "xp"), 0),
            (("quests", 0, "xp"), "10"),
            (("quests", 0, "statAffected"), "luck"),
            (("reward", "xp"), 20),
            (("reward", "coins"), 101),
            (("reward", "specialReward"), "legendary"),
            (("penalty", "missionFail", "stats"), 0),
            (("penalty", "skip", "coins"), 25),
            (("rank",), "Z"),
            (("title",), "   "),
        ],
    )
    def test_out_of_schema_values_rejected(self, path, value):
        with pytest.raises(ValidationError) as excinfo:
            parse_mission(mutated(path, value))

        assert excinfo.value.field == "generator_output"

    def test_too_many_quests_rejected(self):
        quest = {"title": "Q", "statAffected": "agility", "xp": 5}

        with pytest.raises(ValidationError):
            parse_mission(mutated(("quests",), [quest] * 5))

    def test_missing_penalty_rejected(self):
        payload = copy.deepcopy(VALID_MISSION)
        del payload["penalty"]

        with pytest.raises(ValidationError):
            parse_mission(payload)

    def test_invalid_json_text_rejected(self):
        with pytest.raises(ValidationError):
            parse_mission("```json\n{not json}\n```")

    def test_non_text_rejected(self):
        with pytest.raises(ValidationError):
            extract_json(42)


@pytest.mark.unit
class TestParseUpgrade:
    def test_bare_list_accepted(self):
        draft = parse_upgrade([{"title": "Run 3km", "statAffected": "strength", "xp": 20}])

        assert draft.quests[0].xp == 20

    @pytest.mark.parametrize("xp", [0, 51])
    def test_xp_outside_quest_range_rejected(self, xp):
        with pytest.raises(ValidationError):
            parse_upgrade({"quests": [{"title": "Run 3km", "statAffected": "strength", "xp": xp}]})

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            parse_upgrade({"quests": []})


@pytest.mark.unit
class TestParseSidequestVerdict:
    def test_valid(self):
        verdict = parse_sidequest_verdict('{"difficulty": "hard", "stat": "charisma"}')

        assert verdict.difficulty is SidequestDifficulty.HARD
        assert verdict.stat is StatName.CHARISMA

    def test_unknown_difficulty(self):
        with pytest.raises(ValidationError):
            parse_sidequest_verdict({"difficulty": "epic", "stat": "charisma"})
