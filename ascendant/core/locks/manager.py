"""
Lock managers: named mutual exclusion for mutating operations.

Purpose
-------
Serialize writers to one user's progression state. Services hold
`user:{id}` (and `tracker:{id}` where a tracker is involved) around the
whole read-modify-write, outside the database transaction.

Implementations
---------------
- InProcessLockManager: asyncio locks keyed by name. Correct for a single
  process, which is the default deployment and the test setup.
- RedisLockManager: SET NX EX with a random token and a Lua
  compare-and-delete release, for several worker processes sharing one
  database. A lock left by a crashed holder expires after `timeout`.

Both raise StateConflictError when the lock is not acquired within the
wait timeout; the caller's RetryPolicy may try again.

Usage
-----
>>> async with locks.hold("user:7", "tracker:12"):
...     async with db.transaction() as session:
...         ...
"""

from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from ascendant.core.config.config import Config
from ascendant.core.logging.logger import get_logger
from ascendant.modules.shared.exceptions import StateConflictError

logger = get_logger(__name__)


class LockManager:
    """Base interface. Subclasses implement `_acquire_one`."""

    def __init__(self, wait_timeout: Optional[float] = None) -> None:
        self.wait_timeout = Config.LOCK_WAIT_SECONDS if wait_timeout is None else wait_timeout

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncGenerator[None, None]:
        """
        Hold every named lock for the duration of the block.

        Locks are taken in the order given and released in reverse; callers
        pass the user key before the tracker key.

        Raises:
            StateConflictError: If any lock is not acquired in time
        """
        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self._acquire_one(key))
            yield

    def _acquire_one(self, key: str) -> Any:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class InProcessLockManager(LockManager):
    def __init__(self, wait_timeout: Optional[float] = None) -> None:
        super().__init__(wait_timeout)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def _acquire_one(self, key: str) -> AsyncGenerator[None, None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.wait_timeout)
            except asyncio.TimeoutError as exc:
                logger.warning(
                    "Failed to acquire lock within timeout",
                    extra={"lock_key": key, "wait_timeout_seconds": self.wait_timeout},
                )
                raise StateConflictError(
                    "lock", key, f"not acquired within {self.wait_timeout}s"
                ) from exc

            try:
                yield
            finally:
                lock.release()
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                self._locks.pop(key, None)


class RedisLockManager(LockManager):
    """
    Distributed locks on Redis.

    Args:
        client: An async Redis client (built from REDIS_URL when omitted)
        timeout: Lock expiry in seconds
        wait_timeout: Maximum seconds to wait for acquisition
        retry_interval: Sleep between acquisition attempts
    """

    _LUA_UNLOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        client: Optional[Redis] = None,
        *,
        timeout: Optional[int] = None,
        wait_timeout: Optional[float] = None,
        retry_interval: Optional[float] = None,
        namespace: str = "ascendant:lock",
    ) -> None:
        super().__init__(wait_timeout)
        self._client = client or Redis.from_url(Config.REDIS_URL, decode_responses=True)
        self.timeout = Config.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
        self.retry_interval = (
            Config.LOCK_RETRY_INTERVAL_SECONDS if retry_interval is None else retry_interval
        )
        self.namespace = namespace

    @asynccontextmanager
    async def _acquire_one(self, key: str) -> AsyncGenerator[None, None]:
        redis_key = f"{self.namespace}:{key}"
        token = str(uuid.uuid4())
        deadline = time.monotonic() + max(0.0, self.wait_timeout)
        acquired = False

        try:
            while True:
                try:
                    acquired = bool(
                        await self._client.set(redis_key, token, nx=True, ex=self.timeout)
                    )
                except (RedisConnectionError, RedisError) as exc:
                    logger.error(
                        "Redis lock acquisition error",
                        extra={
                            "lock_key": redis_key,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                        exc_info=True,
                    )
                if acquired:
                    logger.debug(
                        "Redis lock acquired",
                        extra={"lock_key": redis_key, "timeout_seconds": self.timeout},
                    )
                    break

                if time.monotonic() >= deadline:
                    logger.warning(
                        "Failed to acquire Redis lock within timeout",
                        extra={"lock_key": redis_key, "wait_timeout_seconds": self.wait_timeout},
                    )
                    raise StateConflictError(
                        "lock", key, f"not acquired within {self.wait_timeout}s"
                    )
                await asyncio.sleep(self.retry_interval)

            yield

        finally:
            if acquired:
                await self._release(redis_key, token)

    async def _release(self, redis_key: str, token: str) -> None:
        try:
            released = await self._client.eval(self._LUA_UNLOCK_SCRIPT, 1, redis_key, token)
        except (RedisConnectionError, RedisError) as exc:
            logger.warning(
                "Failed to release Redis lock (will expire automatically)",
                extra={"lock_key": redis_key, "error": str(exc), "error_type": type(exc).__name__},
            )
            return
        if released:
            logger.debug("Redis lock released", extra={"lock_key": redis_key})
        else:
            logger.warning("Redis lock already expired or stolen", extra={"lock_key": redis_key})

    async def close(self) -> None:
        await self._client.aclose()


def build_lock_manager(backend: Optional[str] = None) -> LockManager:
    """Lock manager for the configured LOCK_BACKEND (`memory` or `redis`)."""
    backend = (backend or Config.LOCK_BACKEND).lower()
    if backend == "redis":
        return RedisLockManager()
    if backend == "memory":
        return InProcessLockManager()
    from ascendant.core.exceptions import ConfigurationError

    raise ConfigurationError("LOCK_BACKEND", f"Unknown lock backend '{backend}'")
