"""
WriteGuard: the lock -> transaction -> retry envelope for mutations.

Every mutating service operation runs as

    retry( hold(locks) { transaction { work(session) } } )

so a retry re-reads fresh state under a fresh lock, and a failure at any
point leaves nothing written.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Sequence, TypeVar

from ascendant.core.logging.logger import log_context

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from ascendant.core.database.retry_policy import RetryPolicy
    from ascendant.core.database.service import DatabaseService
    from ascendant.core.locks.manager import LockManager

T = TypeVar("T")


def user_lock(user_id: int) -> str:
    return f"user:{user_id}"


def tracker_lock(tracker_id: int) -> str:
    return f"tracker:{tracker_id}"


def mission_lock(mission_id: int) -> str:
    return f"mission:{mission_id}"


class WriteGuard:
    def __init__(
        self,
        database: DatabaseService,
        locks: LockManager,
        retry_policy: RetryPolicy,
    ) -> None:
        self.database = database
        self.locks = locks
        self.retry_policy = retry_policy

    async def run(
        self,
        operation_name: str,
        lock_keys: Sequence[str],
        work: Callable[[AsyncSession], Awaitable[T]],
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run `work` in one transaction while holding `lock_keys`.

        Lock keys are acquired in the order given: user, then tracker, then
        mission. Records logged inside carry `operation_name` and the
        user and tracker ids from `context`.
        """
        context = context or {}
        with log_context(
            operation=operation_name,
            user_id=context.get("user_id"),
            tracker_id=context.get("tracker_id"),
        ):
            return await self.retry_policy.execute(
                lambda: self.run_once(lock_keys, work),
                operation_name=operation_name,
                context=context,
            )

    async def run_once(
        self,
        lock_keys: Sequence[str],
        work: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Single attempt, no retry. For writes that depend on an earlier read."""
        async with self.locks.hold(*lock_keys):
            async with self.database.transaction() as session:
                return await work(session)
