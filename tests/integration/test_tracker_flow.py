"""
Integration tests for the daily quest state machine.

Tests complete_quest, join, abandon and delete end to end against an
in-memory database.
"""

import asyncio

import pytest

from ascendant.database.models import Mission, Tracker, TrackerStatus, User
from ascendant.modules.progression.ledger import cascade
from ascendant.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from ascendant.modules.shared.leveling import USER_LEVELS
from tests.conftest import fetch


def event_names(recorded_events):
    return [name for name, _ in recorded_events]


@pytest.mark.integration
@pytest.mark.database
class TestCompleteQuest:
    @pytest.mark.asyncio
    async def test_final_day_pays_full_reward(
        self, container, database, make_user, make_tracker, recorded_events
    ):
        """A tracker on its last day completes the mission and pays in full."""
        # Arrange
        user = await make_user()
        tracker = await make_tracker(user.id, daycount=4)
        first, second = tracker.current_quests

        # Act
        partial = await container.tracker.complete_quest(user.id, tracker.id, first)
        final = await container.tracker.complete_quest(user.id, tracker.id, second)

        # Assert
        assert partial["daily_completed"] is False
        assert partial["reward_granted"] == {"xp": 0, "coins": 0}

        assert final["daily_completed"] is True
        assert final["mission_completed"] is True
        assert final["daycount"] == 5
        assert final["reward_granted"] == {"xp": 100, "coins": 40}
        assert final["status"] == TrackerStatus.COMPLETED.value

        stored = await fetch(database, Tracker, tracker.id)
        assert stored.remaining_quests == []
        assert stored.status == TrackerStatus.COMPLETED.value

        refreshed = await fetch(database, User, user.id)
        assert (refreshed.level, refreshed.xp) == cascade(1, 0, 100, USER_LEVELS)
        assert refreshed.coins == 40
        assert refreshed.completed_tracker_ids == [tracker.id]
        assert "tracker.mission_completed" in event_names(recorded_events)

    @pytest.mark.asyncio
    async def test_ordinary_day_pays_quarter_reward(self, container, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id)

        for quest_id in tracker.current_quests:
            result = await container.tracker.complete_quest(user.id, tracker.id, quest_id)

        assert result["daily_completed"] is True
        assert result["mission_completed"] is False
        assert result["reward_granted"] == {"xp": 25, "coins": 10}
        assert result["streak"] == 1
        assert result["daycount"] == 1
        assert result["status"] == TrackerStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_quest_pays_stat_xp(self, container, database, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id)

        result = await container.tracker.complete_quest(user.id, tracker.id, tracker.current_quests[1])

        assert result["stat_updated"]["stat"] == "intelligence"
        refreshed = await fetch(database, User, user.id)
        # 20 XP exactly fills stat level 1
        assert refreshed.stats["intelligence"] == {"value": 0, "level": 2}
        assert refreshed.stats["strength"] == {"value": 0, "level": 1}

    @pytest.mark.asyncio
    async def test_completion_logged_under_today(self, container, database, clock, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id)
        quest_id = tracker.current_quests[0]

        await container.tracker.complete_quest(user.id, tracker.id, quest_id)

        stored = await fetch(database, Tracker, tracker.id)
        assert stored.quest_completion[clock.today_key()] == [quest_id]

    @pytest.mark.asyncio
    async def test_remaining_stays_within_current(self, container, database, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id)

        await container.tracker.complete_quest(user.id, tracker.id, tracker.current_quests[0])

        stored = await fetch(database, Tracker, tracker.id)
        assert set(stored.remaining_quests) <= set(stored.current_quests)
        assert stored.remaining_quests == [tracker.current_quests[1]]

    @pytest.mark.asyncio
    async def test_quest_already_done_today(self, container, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id)
        quest_id = tracker.current_quests[0]
        await container.tracker.complete_quest(user.id, tracker.id, quest_id)

        with pytest.raises(NotFoundError):
            await container.tracker.complete_quest(user.id, tracker.id, quest_id)

    @pytest.mark.asyncio
    async def test_other_users_tracker(self, container, make_user, make_tracker):
        owner = await make_user()
        intruder = await make_user()
        tracker = await make_tracker(owner.id)

        with pytest.raises(InvalidOperationError):
            await container.tracker.complete_quest(intruder.id, tracker.id, tracker.current_quests[0])

    @pytest.mark.asyncio
    async def test_completed_tracker_rejects_completion(self, container, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id, status=TrackerStatus.COMPLETED.value)

        with pytest.raises(InvalidOperationError):
            await container.tracker.complete_quest(user.id, tracker.id, tracker.current_quests[0])

    @pytest.mark.asyncio
    async def test_missing_tracker(self, container, make_user):
        user = await make_user()

        with pytest.raises(NotFoundError):
            await container.tracker.complete_quest(user.id, 9999, 1)

    @pytest.mark.asyncio
    async def test_invalid_quest_id(self, container, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id)

        with pytest.raises(ValidationError):
            await container.tracker.complete_quest(user.id, tracker.id, 0)


@pytest.mark.integration
@pytest.mark.database
class TestConcurrency:
    @pytest.mark.asyncio
    async def test_parallel_completions_serialize(self, container, database, make_user, make_tracker):
        """Both quests land and the day is settled exactly once."""
        # Arrange
        user = await make_user()
        tracker = await make_tracker(user.id)

        # Act
        results = await asyncio.gather(
            *(
                container.tracker.complete_quest(user.id, tracker.id, quest_id)
                for quest_id in tracker.current_quests
            )
        )

        # Assert
        assert sum(result["daily_completed"] for result in results) == 1
        stored = await fetch(database, Tracker, tracker.id)
        assert stored.remaining_quests == []
        assert stored.streak == 1
        refreshed = await fetch(database, User, user.id)
        assert refreshed.coins == 10

    @pytest.mark.asyncio
    async def test_same_quest_twice_in_parallel(self, container, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id)
        quest_id = tracker.current_quests[0]

        results = await asyncio.gather(
            container.tracker.complete_quest(user.id, tracker.id, quest_id),
            container.tracker.complete_quest(user.id, tracker.id, quest_id),
            return_exceptions=True,
        )

        errors = [result for result in results if isinstance(result, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], NotFoundError)


@pytest.mark.integration
@pytest.mark.database
class TestRollback:
    @pytest.mark.asyncio
    async def test_failure_mid_write_leaves_nothing(
        self, container, database, mocker, make_user, make_tracker, recorded_events
    ):
        """A crash after the stat write rolls back the tracker and the user."""
        # Arrange
        user = await make_user()
        tracker = await make_tracker(user.id)
        await container.tracker.complete_quest(user.id, tracker.id, tracker.current_quests[0])
        before_user = await fetch(database, User, user.id)
        before_stats = dict(before_user.stats)
        recorded_events.clear()
        mocker.patch.object(container.ledger, "apply_xp", side_effect=RuntimeError("disk on fire"))

        # Act
        with pytest.raises(RuntimeError):
            await container.tracker.complete_quest(user.id, tracker.id, tracker.current_quests[1])

        # Assert
        stored = await fetch(database, Tracker, tracker.id)
        assert stored.remaining_quests == [tracker.current_quests[1]]
        assert stored.streak == 0
        after_user = await fetch(database, User, user.id)
        assert after_user.stats == before_stats
        assert after_user.coins == before_user.coins
        assert recorded_events == []


@pytest.mark.integration
@pytest.mark.database
class TestJoinAndRemove:
    @pytest.mark.asyncio
    async def test_join_creates_fresh_tracker(self, container, database, clock, make_user, make_mission):
        # Arrange
        user = await make_user()
        mission = await make_mission(user.id)

        # Act
        tracker = await container.tracker.join_mission(user.id, mission.id)

        # Assert
        assert tracker["current_quests"] == mission.quest_ids
        assert tracker["remaining_quests"] == mission.quest_ids
        assert tracker["quest_completion"] == {clock.today_key(): []}
        assert tracker["streak"] == 0 and tracker["daycount"] == 0
        assert tracker["status"] == TrackerStatus.ACTIVE.value
        stored_mission = await fetch(database, Mission, mission.id)
        assert stored_mission.participants == [user.id]
        assert (await fetch(database, User, user.id)).total_missions == 1

    @pytest.mark.asyncio
    async def test_join_twice(self, container, make_user, make_mission):
        user = await make_user()
        mission = await make_mission(user.id)
        await container.tracker.join_mission(user.id, mission.id)

        with pytest.raises(InvalidOperationError):
            await container.tracker.join_mission(user.id, mission.id)

    @pytest.mark.asyncio
    async def test_join_missing_mission(self, container, make_user):
        user = await make_user()

        with pytest.raises(NotFoundError):
            await container.tracker.join_mission(user.id, 4242)

    @pytest.mark.asyncio
    async def test_abandon(self, container, database, make_user, make_tracker):
        user = await make_user(coins=30)
        tracker = await make_tracker(user.id)

        result = await container.tracker.abandon_tracker(user.id, tracker.id)

        assert result["deleted"] is True
        assert result["status"] == TrackerStatus.DELETED.value
        assert await fetch(database, Tracker, tracker.id) is None
        assert (await fetch(database, Mission, tracker.mission_id)).participants == []
        assert (await fetch(database, User, user.id)).coins == 30

    @pytest.mark.asyncio
    async def test_abandon_completed_rejected(self, container, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id, status=TrackerStatus.COMPLETED.value)

        with pytest.raises(InvalidOperationError):
            await container.tracker.abandon_tracker(user.id, tracker.id)

    @pytest.mark.asyncio
    async def test_delete_completed_keeps_history(self, container, database, make_user, make_tracker):
        user = await make_user()
        tracker = await make_tracker(user.id, daycount=4)
        for quest_id in tracker.current_quests:
            await container.tracker.complete_quest(user.id, tracker.id, quest_id)

        result = await container.tracker.delete_tracker(user.id, tracker.id)

        assert result["previous_status"] == TrackerStatus.COMPLETED.value
        assert await fetch(database, Tracker, tracker.id) is None
        assert (await fetch(database, User, user.id)).completed_tracker_ids == [tracker.id]

    @pytest.mark.asyncio
    async def test_list_and_get(self, container, make_user, make_tracker):
        user = await make_user()
        active = await make_tracker(user.id)
        done = await make_tracker(user.id, status=TrackerStatus.COMPLETED.value)

        all_rows = await container.tracker.list_trackers(user.id)
        completed = await container.tracker.list_trackers(user.id, "completed")
        single = await container.tracker.get_tracker(user.id, active.id)

        assert {row["id"] for row in all_rows} == {active.id, done.id}
        assert [row["id"] for row in completed] == [done.id]
        assert single["id"] == active.id

    @pytest.mark.asyncio
    async def test_list_bad_status(self, container, make_user):
        user = await make_user()

        with pytest.raises(ValidationError):
            await container.tracker.list_trackers(user.id, "failed")
