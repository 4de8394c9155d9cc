"""Named lock managers (in-process and Redis)."""

from ascendant.core.locks.manager import (
    InProcessLockManager,
    LockManager,
    RedisLockManager,
    build_lock_manager,
)

__all__ = ["InProcessLockManager", "LockManager", "RedisLockManager", "build_lock_manager"]
