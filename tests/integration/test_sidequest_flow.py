"""
Integration tests for sidequests: classification, rewards, idempotent completion.
"""

from datetime import datetime, timezone

import pytest

from ascendant.database.models import User
from ascendant.modules.shared.exceptions import NotFoundError, ValidationError
from tests.conftest import fetch

TAX_TASK = "Prepare tax documents"


@pytest.mark.integration
@pytest.mark.database
class TestCreateSidequest:
    @pytest.mark.asyncio
    async def test_keyword_classification(self, container, make_user):
        """'tax' is a hard keyword; nothing matches a stat so endurance is the default."""
        user = await make_user()

        sidequest = await container.sidequests.create_sidequest(
            user.id, TAX_TASK, deadline=datetime(2025, 4, 15, tzinfo=timezone.utc)
        )

        assert (sidequest["difficulty"], sidequest["stat"]) == ("hard", "endurance")
        assert (sidequest["xp"], sidequest["coins"]) == (12, 5)
        assert sidequest["status"] == "pending"

    @pytest.mark.asyncio
    async def test_classifier_verdict_used(self, container, generator, mocker, make_user):
        user = await make_user()
        mocker.patch.object(
            generator,
            "classify_sidequest",
            mocker.AsyncMock(return_value='{"difficulty": "trivial", "stat": "charisma"}'),
        )

        sidequest = await container.sidequests.create_sidequest(user.id, TAX_TASK, hint_effort="low")

        assert (sidequest["difficulty"], sidequest["stat"]) == ("trivial", "charisma")
        generator.classify_sidequest.assert_awaited_once_with(TAX_TASK, "", "low")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "behaviour",
        [{"side_effect": RuntimeError("model offline")}, {"return_value": {"difficulty": "epic"}}],
    )
    async def test_classifier_failure_falls_back(
        self, container, generator, mocker, make_user, behaviour
    ):
        """A failing or nonsensical classifier never blocks sidequest creation."""
        user = await make_user()
        mocker.patch.object(generator, "classify_sidequest", mocker.AsyncMock(**behaviour))

        sidequest = await container.sidequests.create_sidequest(user.id, TAX_TASK)

        assert (sidequest["difficulty"], sidequest["stat"]) == ("hard", "endurance")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   ", None])
    async def test_title_required(self, container, make_user, title):
        user = await make_user()

        with pytest.raises(ValidationError):
            await container.sidequests.create_sidequest(user.id, title)

    @pytest.mark.asyncio
    async def test_unknown_user(self, container):
        with pytest.raises(NotFoundError):
            await container.sidequests.create_sidequest(99, TAX_TASK)


@pytest.mark.integration
@pytest.mark.database
class TestCompleteSidequest:
    @pytest.mark.asyncio
    async def test_reward_paid_once(self, container, database, clock, make_user, recorded_events):
        # Arrange
        user = await make_user()
        sidequest = await container.sidequests.create_sidequest(user.id, TAX_TASK)

        # Act
        first = await container.sidequests.complete_sidequest(user.id, sidequest["id"])
        second = await container.sidequests.complete_sidequest(user.id, sidequest["id"])

        # Assert
        assert first["already_completed"] is False
        assert first["reward"] == {"xp": 12, "coins": 5, "stat": "endurance", "stat_gain": 3}
        assert first["sidequest"]["status"] == "completed"
        assert first["sidequest"]["completed_at"] == clock.now()

        assert second["already_completed"] is True
        assert second["reward"] is None

        stored = await fetch(database, User, user.id)
        assert (stored.xp, stored.coins) == (12, 5)
        assert stored.stats["endurance"] == {"value": 3, "level": 1}
        assert [name for name, _ in recorded_events].count("sidequest.completed") == 1

    @pytest.mark.asyncio
    async def test_other_users_sidequest(self, container, make_user):
        owner = await make_user()
        other = await make_user()
        sidequest = await container.sidequests.create_sidequest(owner.id, TAX_TASK)

        with pytest.raises(NotFoundError):
            await container.sidequests.complete_sidequest(other.id, sidequest["id"])

    @pytest.mark.asyncio
    async def test_list_by_status(self, container, make_user):
        user = await make_user()
        done = await container.sidequests.create_sidequest(user.id, "Wash the car")
        pending = await container.sidequests.create_sidequest(user.id, "Call grandma")
        await container.sidequests.complete_sidequest(user.id, done["id"])

        everything = await container.sidequests.list_sidequests(user.id)
        open_items = await container.sidequests.list_sidequests(user.id, "pending")

        assert [item["id"] for item in everything] == [pending["id"], done["id"]]
        assert [item["id"] for item in open_items] == [pending["id"]]

    @pytest.mark.asyncio
    async def test_list_bad_status(self, container, make_user):
        user = await make_user()

        with pytest.raises(ValidationError):
            await container.sidequests.list_sidequests(user.id, "archived")
