"""Unit tests for hunter score and rank thresholds."""

import pytest

from ascendant.database.models import Rank
from ascendant.modules.ascension import compute_hunter_score, rank_for_score


@pytest.mark.unit
class TestHunterScore:
    def test_components(self):
        # Arrange: 5 stats at level 2, 4 missions, 2 completed, streaks 3 and 5
        # Act
        score = compute_hunter_score(1000, 10, 4, 2, [3, 5])

        # Assert
        assert score.xp_score == pytest.approx(300)
        assert score.stat_score == pytest.approx(30)
        assert score.mission_score == pytest.approx(16)
        assert score.success_score == pytest.approx(5)
        assert score.streak_score == pytest.approx(2)
        assert score.total == pytest.approx(353)

    def test_components_include_inputs(self):
        components = compute_hunter_score(1000, 10, 4, 2, [3, 5]).components()

        assert components["xp"] == 1000
        assert components["total_stat_levels"] == 10
        assert (components["total_missions"], components["completed_missions"]) == (4, 2)
        assert components["success_rate"] == 0.5
        assert components["avg_streak"] == 4
        assert components["xp_score"] == 300

    def test_no_missions_no_trackers(self):
        score = compute_hunter_score(0, 5, 0, 0, [])

        assert score.success_score == 0
        assert score.streak_score == 0
        assert score.total == pytest.approx(15)

    def test_custom_weights(self):
        score = compute_hunter_score(100, 0, 0, 0, [], weights={"xp": 1.0})

        assert score.xp_score == 100


@pytest.mark.unit
class TestRankForScore:
    @pytest.mark.parametrize(
        "score, rank",
        [
            (0, Rank.E),
            (299.99, Rank.E),
            (300, Rank.D),
            (999, Rank.C),
            (1000, Rank.B),
            (1500, Rank.A),
            (5000, Rank.S),
        ],
    )
    def test_thresholds(self, score, rank):
        assert rank_for_score(score) is rank
