"""
Unit tests for the lock managers.

The Redis manager runs against a mocked async client; the in-process
manager runs for real on the event loop.
"""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ascendant.core.locks.manager import InProcessLockManager, RedisLockManager
from ascendant.modules.shared.exceptions import StateConflictError


@pytest.mark.unit
@pytest.mark.asyncio
class TestInProcessLockManager:
    async def test_serializes_holders(self):
        # Arrange
        locks = InProcessLockManager(wait_timeout=1.0)
        order = []

        async def worker(name):
            async with locks.hold("tracker:1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        # Act
        await asyncio.gather(worker("a"), worker("b"))

        # Assert
        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    async def test_timeout_raises_state_conflict(self):
        locks = InProcessLockManager(wait_timeout=0.01)

        async with locks.hold("user:1"):
            with pytest.raises(StateConflictError):
                async with locks.hold("user:1"):
                    pass

    async def test_released_after_error(self):
        locks = InProcessLockManager(wait_timeout=0.1)

        with pytest.raises(RuntimeError):
            async with locks.hold("user:1", "tracker:2"):
                raise RuntimeError("work failed")

        assert not locks.is_locked("user:1")
        assert not locks.is_locked("tracker:2")

    async def test_distinct_keys_do_not_block(self):
        locks = InProcessLockManager(wait_timeout=0.01)

        async with locks.hold("tracker:1"):
            async with locks.hold("tracker:2"):
                assert locks.is_locked("tracker:2")


@pytest.fixture
def redis_client(mocker):
    client = mocker.MagicMock()
    client.set = mocker.AsyncMock(return_value=True)
    client.eval = mocker.AsyncMock(return_value=1)
    client.aclose = mocker.AsyncMock()
    return client


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisLockManager:
    async def test_acquire_and_release(self, redis_client):
        # Arrange
        locks = RedisLockManager(redis_client, timeout=5, wait_timeout=0.1, retry_interval=0.01)

        # Act
        async with locks.hold("tracker:9"):
            pass

        # Assert
        args, kwargs = redis_client.set.call_args
        assert args[0] == "ascendant:lock:tracker:9"
        assert kwargs == {"nx": True, "ex": 5}
        token = args[1]
        redis_client.eval.assert_awaited_once()
        assert redis_client.eval.call_args.args[2:] == ("ascendant:lock:tracker:9", token)

    async def test_contended_lock_times_out(self, redis_client):
        redis_client.set.return_value = None
        locks = RedisLockManager(redis_client, timeout=5, wait_timeout=0.03, retry_interval=0.01)

        with pytest.raises(StateConflictError):
            async with locks.hold("tracker:9"):
                pass

        redis_client.eval.assert_not_awaited()

    async def test_connection_error_then_success(self, redis_client):
        redis_client.set.side_effect = [RedisConnectionError("down"), True]
        locks = RedisLockManager(redis_client, timeout=5, wait_timeout=1.0, retry_interval=0.01)

        async with locks.hold("user:3"):
            pass

        assert redis_client.set.await_count == 2

    async def test_close(self, redis_client):
        await RedisLockManager(redis_client).close()

        redis_client.aclose.assert_awaited_once()
