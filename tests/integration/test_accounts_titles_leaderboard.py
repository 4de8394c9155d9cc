"""
Integration tests for accounts, titles and the leaderboard.
"""

import pytest
import pytest_asyncio

from ascendant.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)


@pytest.mark.integration
@pytest.mark.database
class TestAccounts:
    @pytest.mark.asyncio
    async def test_register_defaults(self, container, recorded_events):
        profile = await container.progression.register_user("  Jinwoo ", "Jin@Example.com")

        assert profile["username"] == "Jinwoo"
        assert profile["email"] == "jin@example.com"
        assert (profile["level"], profile["xp"], profile["coins"], profile["rank"]) == (1, 0, 0, "E")
        assert all(block == {"value": 0, "level": 1} for block in profile["stats"].values())
        assert ("progression.user_registered", {"user_id": profile["id"]}) in recorded_events

    @pytest.mark.asyncio
    async def test_duplicate_username(self, container):
        await container.progression.register_user("jinwoo")

        with pytest.raises(InvalidOperationError):
            await container.progression.register_user("jinwoo")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, container):
        await container.progression.register_user("first", "same@example.com")

        with pytest.raises(InvalidOperationError):
            await container.progression.register_user("second", "same@example.com")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "username,email", [("", None), ("   ", None), ("x" * 65, None), ("ok", "no-at-sign")]
    )
    async def test_register_validation(self, container, username, email):
        with pytest.raises(ValidationError):
            await container.progression.register_user(username, email)

    @pytest.mark.asyncio
    async def test_profile_thresholds(self, container, make_user):
        user = await make_user(level=2, xp=10)

        profile = await container.progression.get_profile(user.id)

        assert profile["xp_to_next_level"] == 51
        assert set(profile["stat_thresholds"].values()) == {20}
        assert profile["completed_missions"] == 0

    @pytest.mark.asyncio
    async def test_profile_missing(self, container):
        with pytest.raises(NotFoundError):
            await container.progression.get_profile(12345)


@pytest.mark.integration
@pytest.mark.database
class TestTitles:
    @pytest.mark.asyncio
    async def test_list_marks_eligible(self, container, make_user):
        user = await make_user()

        titles = {title["name"]: title for title in await container.titles.list_titles(user.id)}

        assert titles["Novice Hunter"]["unlocked"] is True
        assert titles["Coin Hoarder"]["unlocked"] is False
        assert titles["Coin Hoarder"]["requirements"] == [{"type": "coins", "value": 200}]

    @pytest.mark.asyncio
    async def test_unlock_is_idempotent(self, container, make_user, recorded_events):
        # Arrange
        user = await make_user(coins=250)

        # Act
        first = await container.titles.unlock_eligible_titles(user.id)
        second = await container.titles.unlock_eligible_titles(user.id)

        # Assert
        assert first["unlocked"] == ["Novice Hunter", "Coin Hoarder"]
        assert second["unlocked"] == []
        assert second["titles"] == ["Novice Hunter", "Coin Hoarder"]
        unlocked_events = [payload["title"] for name, payload in recorded_events if name == "title.unlocked"]
        assert unlocked_events == ["Novice Hunter", "Coin Hoarder"]

    @pytest.mark.asyncio
    async def test_streak_title_uses_best_tracker(self, container, make_user, make_tracker):
        user = await make_user()
        await make_tracker(user.id, streak=2)
        await make_tracker(user.id, streak=5)

        result = await container.titles.unlock_eligible_titles(user.id)

        assert "Streak Adept" in result["unlocked"]

    @pytest.mark.asyncio
    async def test_hidden_titles_unlock_but_stay_unlisted(self, container, config_manager, make_user):
        config_manager.set(
            "titles.catalog",
            [{"name": "Open Book", "tier": 1}, {"name": "Secret Path", "tier": 2, "hidden": True}],
        )
        user = await make_user()

        listed = await container.titles.list_titles(user.id)
        result = await container.titles.unlock_eligible_titles(user.id)

        assert [title["name"] for title in listed] == ["Open Book"]
        assert result["unlocked"] == ["Open Book", "Secret Path"]

    @pytest.mark.asyncio
    async def test_equip(self, container, make_user):
        user = await make_user(titles=["Novice Hunter", "Coin Hoarder"])

        result = await container.titles.equip_title(user.id, "Coin Hoarder")

        assert result == {"active_title": "Coin Hoarder", "titles": ["Coin Hoarder", "Novice Hunter"]}
        assert (await container.progression.get_profile(user.id))["active_title"] == "Coin Hoarder"

    @pytest.mark.asyncio
    async def test_equip_locked_title(self, container, make_user):
        user = await make_user()

        with pytest.raises(InvalidOperationError):
            await container.titles.equip_title(user.id, "Relentless")


@pytest.mark.integration
@pytest.mark.database
class TestLeaderboard:
    @pytest_asyncio.fixture
    async def hunters(self, make_user):
        return [
            await make_user("alpha", xp=10, coins=90),
            await make_user("bravo", xp=30, coins=10),
            await make_user("charlie", xp=20, coins=50),
        ]

    @pytest.mark.asyncio
    async def test_default_sort_is_xp(self, container, hunters):
        board = await container.leaderboard.get_leaderboard()

        assert [entry["username"] for entry in board] == ["bravo", "charlie", "alpha"]
        assert [entry["position"] for entry in board] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_sort_by_coins(self, container, hunters):
        board = await container.leaderboard.get_leaderboard(sort_by="coins")

        assert [entry["username"] for entry in board] == ["alpha", "charlie", "bravo"]

    @pytest.mark.asyncio
    async def test_unknown_sort_falls_back(self, container, hunters):
        board = await container.leaderboard.get_leaderboard(sort_by="password")

        assert [entry["username"] for entry in board] == ["bravo", "charlie", "alpha"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,expected", [(0, 1), (-5, 1), (2, 2), (1000, 3), ("lots", 3)])
    async def test_limit_clamped(self, container, hunters, limit, expected):
        board = await container.leaderboard.get_leaderboard(limit=limit)

        assert len(board) == expected
