"""Unit tests for EventBus."""

import pytest

from ascendant.core.event.bus import EventBus, ListenerPriority, matches


@pytest.mark.unit
class TestMatches:
    @pytest.mark.parametrize(
        "event, pattern, expected",
        [
            ("tracker.joined", "tracker.joined", True),
            ("tracker.joined", "tracker.*", True),
            ("tracker.joined", "*", True),
            ("penalty.applied", "tracker.*", False),
            ("tracker.mission_completed", "*.mission_completed", True),
        ],
    )
    def test_patterns(self, event, pattern, expected):
        assert matches(event, pattern) is expected


@pytest.mark.unit
@pytest.mark.asyncio
class TestPublish:
    async def test_delivers_to_sync_and_async_listeners(self):
        # Arrange
        bus = EventBus()
        seen = []

        async def on_async(payload):
            seen.append(("async", payload["id"]))

        bus.subscribe("tracker.joined", lambda payload: seen.append(("sync", payload["id"])))
        bus.subscribe("tracker.*", on_async)

        # Act
        await bus.publish("tracker.joined", {"id": 3})

        # Assert
        assert sorted(seen) == [("async", 3), ("sync", 3)]

    async def test_priority_order(self):
        bus = EventBus()
        order = []
        bus.subscribe("x", lambda p: order.append("low"), priority=ListenerPriority.LOW)
        bus.subscribe("x", lambda p: order.append("critical"), priority=ListenerPriority.CRITICAL)

        await bus.publish("x", {})

        assert order == ["critical", "low"]

    async def test_listener_error_is_isolated(self):
        bus = EventBus()
        seen = []

        def broken(payload):
            raise RuntimeError("listener bug")

        bus.subscribe("x", broken)
        bus.subscribe("x", lambda p: seen.append(p))

        results = await bus.publish("x", {"ok": True})

        assert seen == [{"ok": True}]
        assert len(results) == 1
        assert bus.get_metrics_summary()["listener_failures"] == 1

    async def test_once_listener_fires_once(self):
        bus = EventBus()
        seen = []
        bus.subscribe("x", lambda p: seen.append(p), once=True)

        await bus.publish("x", {})
        await bus.publish("x", {})

        assert len(seen) == 1
        assert bus.get_listener_count("x") == 0


@pytest.mark.unit
class TestSubscribe:
    def test_rejects_non_callable(self):
        with pytest.raises(ValueError):
            EventBus().subscribe("x", "not callable")

    def test_duplicate_identifier_ignored(self):
        bus = EventBus()

        bus.subscribe("x", lambda p: None, identifier="same")
        bus.subscribe("x", lambda p: None, identifier="same")

        assert bus.get_listener_count("x") == 1

    def test_unsubscribe(self):
        bus = EventBus()
        listener_id = bus.subscribe("x", lambda p: None)

        assert bus.unsubscribe("x", listener_id)
        assert bus.get_listener_count() == 0
