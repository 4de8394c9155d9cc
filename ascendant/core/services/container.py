"""
Service Container
=================

Purpose
-------
Dependency injection container for all domain services. Builds the
infrastructure (database, locks, retry policy, clock, content generator),
the repositories and the services, and owns their lifecycle.

Responsibilities
----------------
- Construct infrastructure from static Config unless instances are injected
- Initialize all domain services with their dependencies
- Expose services as properties that fail fast before initialize()
- Configure logging on initialize() and tear it down on shutdown()
- Shut infrastructure down in reverse order

Non-Responsibilities
--------------------
- Business logic
- Process signal handling

Architecture Notes
------------------
- Nothing here is a module-level singleton; tests build one container per
  test against an in-memory database.
- All domain services share the constructor prefix
  (config_manager, event_bus, logger) followed by keyword dependencies.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from ascendant.core.config.manager import ConfigManager
from ascendant.core.database.retry_policy import RetryPolicy
from ascendant.core.database.service import DatabaseService
from ascendant.core.event.bus import EventBus
from ascendant.core.locks.manager import build_lock_manager
from ascendant.core.logging.logger import get_logger, setup_logging, shutdown_logging
from ascendant.modules.ascension import AscensionService
from ascendant.modules.leaderboard import LeaderboardService
from ascendant.modules.missions.generator import build_content_generator
from ascendant.modules.missions.repository import MissionRepository, QuestRepository
from ascendant.modules.missions.service import MissionService
from ascendant.modules.penalty import PenaltyService
from ascendant.modules.progression import ProgressionLedger, ProgressionService, UserRepository
from ascendant.modules.shared.clock import Clock
from ascendant.modules.shared.guard import WriteGuard
from ascendant.modules.sidequest import SidequestRepository, SidequestService
from ascendant.modules.titles import TitleService
from ascendant.modules.tracker import QuestTrackerService, TrackerRepository
from ascendant.modules.upgrade import UpgradeService

if TYPE_CHECKING:
    from logging import Logger

    from ascendant.core.locks.manager import LockManager
    from ascendant.modules.missions.generator import ContentGenerator

NOT_INITIALIZED = "ServiceContainer not initialized. Call initialize() first."


class ServiceContainer:
    """
    Usage:
        container = ServiceContainer()
        await container.initialize(create_schema=True)

        await container.tracker.complete_quest(user_id, tracker_id, quest_id)

        await container.shutdown()
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        event_bus: Optional[EventBus] = None,
        logger: Optional[Logger] = None,
        *,
        database: Optional[DatabaseService] = None,
        locks: Optional[LockManager] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Optional[Clock] = None,
        generator: Optional[ContentGenerator] = None,
    ) -> None:
        self.config_manager = config_manager or ConfigManager()
        self.event_bus = event_bus or EventBus()
        self._logger = logger or get_logger(__name__)

        self.database = database or DatabaseService()
        self.locks = locks or build_lock_manager()
        self.retry_policy = retry_policy or RetryPolicy.from_config()
        self.clock = clock or Clock()
        self.generator = generator or build_content_generator()

        self.ledger = ProgressionLedger()
        self.guard = WriteGuard(self.database, self.locks, self.retry_policy)

        self._services: Dict[str, Any] = {}
        self._service_init_times: Dict[str, float] = {}
        self._initialized = False
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self, *, create_schema: bool = False) -> None:
        """
        Initialize the database and all services.

        Args:
            create_schema: Create missing tables (development and tests)
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        setup_logging()
        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            await self.database.initialize()
            if create_schema:
                await self.database.create_all()

            users = UserRepository(get_logger("ascendant.repository.user"))
            trackers = TrackerRepository(get_logger("ascendant.repository.tracker"))
            missions = MissionRepository(get_logger("ascendant.repository.mission"))
            quests = QuestRepository(get_logger("ascendant.repository.quest"))
            sidequests = SidequestRepository(get_logger("ascendant.repository.sidequest"))

            self._create_service("progression", ProgressionService, guard=self.guard, users=users)
            self._create_service(
                "tracker",
                QuestTrackerService,
                guard=self.guard,
                clock=self.clock,
                ledger=self.ledger,
                users=users,
                trackers=trackers,
                missions=missions,
                quests=quests,
            )
            self._create_service(
                "penalty",
                PenaltyService,
                guard=self.guard,
                clock=self.clock,
                ledger=self.ledger,
                users=users,
                trackers=trackers,
                missions=missions,
            )
            self._create_service(
                "upgrade",
                UpgradeService,
                guard=self.guard,
                clock=self.clock,
                generator=self.generator,
                trackers=trackers,
                quests=quests,
            )
            self._create_service(
                "ascension",
                AscensionService,
                guard=self.guard,
                ledger=self.ledger,
                users=users,
                trackers=trackers,
            )
            self._create_service(
                "missions",
                MissionService,
                guard=self.guard,
                generator=self.generator,
                users=users,
                missions=missions,
                quests=quests,
                trackers=trackers,
            )
            self._create_service(
                "sidequests",
                SidequestService,
                guard=self.guard,
                clock=self.clock,
                ledger=self.ledger,
                users=users,
                sidequests=sidequests,
                classifier=self.generator if hasattr(self.generator, "classify_sidequest") else None,
            )
            self._create_service(
                "titles", TitleService, guard=self.guard, users=users, trackers=trackers
            )
            self._create_service(
                "leaderboard", LeaderboardService, database=self.database, users=users
            )

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
            }
            if self._service_init_times:
                slowest = max(self._service_init_times, key=self._service_init_times.__getitem__)
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(self._service_init_times[slowest], 3)

            self._logger.info("Service container initialized successfully", extra=extra_data)

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        start = time.perf_counter()

        try:
            instance = cls(
                config_manager=self.config_manager,
                event_bus=self.event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._services[name] = instance
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    async def shutdown(self) -> None:
        """Close locks, then the database, then logging. Safe to call twice."""
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        await self.locks.close()
        await self.database.shutdown()
        self._services.clear()
        self._initialized = False
        self._logger.info("Service container shut down")
        shutdown_logging()

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._services),
            "database": await self.database.health_check() if self._initialized else False,
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
        }

    def _get(self, name: str) -> Any:
        if not self._initialized or name not in self._services:
            raise RuntimeError(NOT_INITIALIZED)
        return self._services[name]

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def progression(self) -> ProgressionService:
        return self._get("progression")

    @property
    def tracker(self) -> QuestTrackerService:
        return self._get("tracker")

    @property
    def penalty(self) -> PenaltyService:
        return self._get("penalty")

    @property
    def upgrade(self) -> UpgradeService:
        return self._get("upgrade")

    @property
    def ascension(self) -> AscensionService:
        return self._get("ascension")

    @property
    def missions(self) -> MissionService:
        return self._get("missions")

    @property
    def sidequests(self) -> SidequestService:
        return self._get("sidequests")

    @property
    def titles(self) -> TitleService:
        return self._get("titles")

    @property
    def leaderboard(self) -> LeaderboardService:
        return self._get("leaderboard")
