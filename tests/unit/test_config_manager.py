"""
Unit tests for ConfigManager.

Covers packaged defaults, YAML override directories, runtime overrides and
isolation between instances.
"""

import pytest

from ascendant.core.config.manager import ConfigManager


@pytest.mark.unit
class TestDefaults:
    def test_packaged_balance_values(self):
        config = ConfigManager()

        assert config.get("upgrade.min_streak") == 5
        assert config.get("ascension.thresholds.S") == 2200
        assert config.get("sidequest.difficulty_table.hard") == {"xp": 12, "coins": 5, "stat_gain": 3}

    def test_title_catalog_loaded(self):
        catalog = ConfigManager().get("titles.catalog")

        assert any(entry["name"] == "Novice Hunter" for entry in catalog)

    def test_missing_key_returns_default(self):
        assert ConfigManager().get("nope.not.here", 17) == 17

    def test_without_defaults(self):
        assert ConfigManager(load_defaults=False).get("upgrade.min_streak") is None


@pytest.mark.unit
class TestOverrides:
    def test_override_directory_deep_merges(self, tmp_path):
        # Arrange
        (tmp_path / "balance.yaml").write_text("upgrade:\n  min_streak: 3\n", encoding="utf-8")

        # Act
        config = ConfigManager(overrides_dir=tmp_path)

        # Assert
        assert config.get("upgrade.min_streak") == 3
        assert config.get("upgrade.escalation_difficulty") == 40

    def test_broken_yaml_is_skipped(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("upgrade: [unclosed\n", encoding="utf-8")

        config = ConfigManager(overrides_dir=tmp_path)

        assert config.get("upgrade.min_streak") == 5

    def test_set_and_reset(self):
        config = ConfigManager(overrides={"leaderboard.max_limit": 10})
        assert config.get("leaderboard.max_limit") == 10

        config.set("upgrade.min_streak", 1)
        assert config.get("upgrade.min_streak") == 1

        config.reset()
        assert config.get("upgrade.min_streak") == 5

    def test_instances_are_isolated(self):
        first = ConfigManager()
        second = ConfigManager()

        first.set("upgrade.min_streak", 2)

        assert second.get("upgrade.min_streak") == 5

    def test_returned_containers_are_copies(self):
        config = ConfigManager()

        table = config.get("sidequest.difficulty_table")
        table["hard"]["xp"] = 999

        assert config.get("sidequest.difficulty_table.hard.xp") == 12
