"""
Pytest Configuration and Fixtures for Ascendant Tests
=====================================================

Purpose
-------
Centralized fixtures for the Ascendant test suite: balance config, event
bus, a pinned clock, an in-memory database, a fully wired ServiceContainer
and factories for users, missions and trackers.

Architecture Notes
------------------
- Unit tests use plain objects and mocks (fast, isolated).
- Integration tests run services end to end against in-memory SQLite
  (aiosqlite). Every test gets a fresh schema.
- Fixtures follow scope function; nothing is shared between tests.
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("GENERATOR_BACKEND", "static")
os.environ.setdefault("LOCK_BACKEND", "memory")

from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence, Tuple

import pytest
import pytest_asyncio

from ascendant.core.config.manager import ConfigManager
from ascendant.core.database.retry_policy import RetryConfig, RetryPolicy
from ascendant.core.database.service import DatabaseService
from ascendant.core.event.bus import EventBus
from ascendant.core.locks.manager import InProcessLockManager
from ascendant.core.services.container import ServiceContainer
from ascendant.database.models import Mission, Quest, Tracker, User
from ascendant.modules.missions.generator import StaticContentGenerator
from ascendant.modules.shared.clock import FixedClock

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"
START = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Register markers when running without pyproject's ini options."""
    config.addinivalue_line("markers", "unit: fast tests with no database")
    config.addinivalue_line("markers", "integration: tests that run services end to end")
    config.addinivalue_line("markers", "database: tests that touch the database")


# ============================================================================
# CORE FIXTURES
# ============================================================================


@pytest.fixture
def config_manager() -> ConfigManager:
    """Fresh balance config per test; `set()` overrides do not leak."""
    return ConfigManager()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(
        RetryConfig(max_attempts=3, initial_backoff_ms=1, max_backoff_ms=5, jitter_ms=0)
    )


@pytest.fixture
def generator() -> StaticContentGenerator:
    return StaticContentGenerator()


RECORDED_EVENTS = (
    "progression.user_registered",
    "progression.level_changed",
    "tracker.quest_completed",
    "tracker.daily_completed",
    "tracker.mission_completed",
    "tracker.joined",
    "tracker.deleted",
    "penalty.applied",
    "upgrade.applied",
    "ascension.rank_up",
    "mission.created",
    "sidequest.completed",
    "title.unlocked",
)


@pytest.fixture
def recorded_events(event_bus: EventBus) -> List[Tuple[str, Dict[str, Any]]]:
    """Every domain event published on the bus, as (name, payload) pairs."""
    seen: List[Tuple[str, Dict[str, Any]]] = []
    for name in RECORDED_EVENTS:
        event_bus.subscribe(
            name,
            lambda payload, name=name: seen.append((name, payload)),
            identifier=f"recorder.{name}",
        )
    return seen


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[DatabaseService, None]:
    """
    In-memory SQLite with the full schema.

    Scope: function (clean slate per test)
    """
    service = DatabaseService(IN_MEMORY_URL)
    await service.initialize()
    await service.create_all()
    yield service
    await service.shutdown()


@pytest_asyncio.fixture
async def container(
    config_manager: ConfigManager,
    event_bus: EventBus,
    database: DatabaseService,
    clock: FixedClock,
    retry_policy: RetryPolicy,
    generator: StaticContentGenerator,
) -> AsyncGenerator[ServiceContainer, None]:
    """Fully wired container over the in-memory database."""
    services = ServiceContainer(
        config_manager,
        event_bus,
        database=database,
        locks=InProcessLockManager(wait_timeout=2.0),
        retry_policy=retry_policy,
        clock=clock,
        generator=generator,
    )
    await services.initialize()
    yield services
    await services.shutdown()


# ============================================================================
# ROW HELPERS
# ============================================================================


async def fetch(database: DatabaseService, model: type, row_id: int) -> Optional[Any]:
    """Load a row in a throwaway session."""
    async with database.session() as session:
        return await session.get(model, row_id)


async def update_row(database: DatabaseService, model: type, row_id: int, **fields: Any) -> Any:
    """Overwrite columns on one row and commit."""
    async with database.transaction() as session:
        row = await session.get(model, row_id)
        for name, value in fields.items():
            setattr(row, name, value)
        return row


# ============================================================================
# FACTORIES
# ============================================================================


@pytest.fixture
def make_user(container: ServiceContainer, database: DatabaseService):
    """
    Register a user, then overwrite any progression fields given.

    Usage:
        user = await make_user("jin", level=3, coins=50)
    """
    counter = {"n": 0}

    async def factory(username: Optional[str] = None, **fields: Any) -> User:
        counter["n"] += 1
        name = username or f"hunter{counter['n']}"
        profile = await container.progression.register_user(name)
        if fields:
            await update_row(database, User, profile["id"], **fields)
        return await fetch(database, User, profile["id"])

    return factory


@pytest.fixture
def make_mission(database: DatabaseService):
    """
    Insert a mission and its quests directly.

    quests: sequence of (title, stat, xp)
    """

    async def factory(
        creator_id: int,
        *,
        duration: int = 5,
        quests: Sequence[Tuple[str, str, int]] = (
            ("Run 2km", "strength", 10),
            ("Read 20 pages", "intelligence", 20),
        ),
        reward: Optional[Dict[str, Any]] = None,
        penalty: Optional[Dict[str, Dict[str, int]]] = None,
        rank: str = "D",
    ) -> Mission:
        async with database.transaction() as session:
            rows = [Quest(title=title, stat_affected=stat, xp=xp) for title, stat, xp in quests]
            session.add_all(rows)
            await session.flush()
            mission = Mission(
                title="Test Mission",
                description="A mission used in tests",
                refined_description="A mission used in tests",
                duration=duration,
                quest_ids=[row.id for row in rows],
                reward=reward or {"xp": 100, "coins": 40, "specialReward": None},
                penalty=penalty
                or {"missionFail": {"coins": 20, "stats": 3}, "skip": {"coins": 10, "stats": 1}},
                rank=rank,
                participants=[],
                public=True,
                is_custom=False,
                creator_id=creator_id,
            )
            session.add(mission)
            await session.flush()
            return mission

    return factory


@pytest.fixture
def make_tracker(container: ServiceContainer, database: DatabaseService, make_mission):
    """
    Join a fresh mission, then overwrite any tracker fields given.

    Usage:
        tracker = await make_tracker(user.id, daycount=4, streak=6)
    """

    async def factory(user_id: int, mission: Optional[Mission] = None, **fields: Any) -> Tracker:
        mission = mission or await make_mission(user_id)
        snapshot = await container.tracker.join_mission(user_id, mission.id)
        if fields:
            await update_row(database, Tracker, snapshot["id"], **fields)
        return await fetch(database, Tracker, snapshot["id"])

    return factory
