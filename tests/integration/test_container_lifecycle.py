"""
Integration tests for ServiceContainer lifecycle and write-path log context.
"""

import pytest

from ascendant.core.logging import current_log_context, is_logging_configured
from ascendant.core.services.container import ServiceContainer
from ascendant.modules.shared.guard import tracker_lock, user_lock


@pytest.mark.integration
@pytest.mark.database
class TestLifecycle:
    @pytest.mark.asyncio
    async def test_logging_follows_container(self, config_manager, event_bus, database, generator):
        services = ServiceContainer(config_manager, event_bus, database=database, generator=generator)

        await services.initialize()
        configured = is_logging_configured()
        await services.shutdown()

        assert configured is True
        assert is_logging_configured() is False

    @pytest.mark.asyncio
    async def test_shutdown_twice_is_safe(self, container):
        await container.shutdown()
        await container.shutdown()

        assert is_logging_configured() is False

    @pytest.mark.asyncio
    async def test_services_unavailable_after_shutdown(self, container):
        await container.shutdown()

        with pytest.raises(RuntimeError):
            container.tracker


@pytest.mark.integration
@pytest.mark.database
class TestWriteContext:
    @pytest.mark.asyncio
    async def test_guarded_write_binds_context(self, container):
        seen = {}

        async def work(session):
            seen.update(current_log_context())
            return "done"

        result = await container.guard.run(
            "tracker.complete_quest",
            [user_lock(1), tracker_lock(2)],
            work,
            context={"user_id": 1, "tracker_id": 2, "quest_id": 3},
        )

        assert result == "done"
        assert seen == {"operation": "tracker.complete_quest", "user_id": 1, "tracker_id": 2}
        assert current_log_context() == {}
