"""Unit tests for the keyword task classifier."""

import pytest

from ascendant.database.models import SidequestDifficulty, StatName
from ascendant.modules.shared.heuristics import classify_task, guess_difficulty, guess_stat


@pytest.mark.unit
class TestGuessDifficulty:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("take out the trash", SidequestDifficulty.TRIVIAL),
            ("study chapter 4", SidequestDifficulty.EASY),
            ("workout at the park", SidequestDifficulty.MEDIUM),
            ("finish thesis draft", SidequestDifficulty.HARD),
            ("something unrelated", SidequestDifficulty.EASY),
        ],
    )
    def test_single_keyword(self, text, expected):
        assert guess_difficulty(text) is expected

    def test_later_rule_overrides_earlier(self):
        """'clean' is trivial but 'deep clean' is hard."""
        assert guess_difficulty("Deep clean the garage") is SidequestDifficulty.HARD


@pytest.mark.unit
class TestGuessStat:
    def test_first_match_wins(self):
        """'research' (intelligence) is checked before 'workout' (strength)."""
        assert guess_stat("research a workout plan") is StatName.INTELLIGENCE

    def test_default_is_endurance(self):
        assert guess_stat("ponder") is StatName.ENDURANCE

    def test_charisma(self):
        assert guess_stat("network with the team") is StatName.CHARISMA


@pytest.mark.unit
def test_classify_task_uses_description():
    difficulty, stat = classify_task("Weekend", "prepare the presentation for the team")

    assert difficulty is SidequestDifficulty.HARD
    assert stat is StatName.CHARISMA
