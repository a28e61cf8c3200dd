"""
Service Container
=================

Purpose
-------
Builds every Merit domain service once, with shared dependencies, and
hands them out by name.

Responsibilities
----------------
- Construct services in dependency order (ledger before the workflow)
- Share one TierPolicy so every service reads the same tier settings
- Register the config validators that guard tier settings
- Build refresh coordinators configured from ConfigManager

Non-Responsibilities
--------------------
- Database and config bootstrap (ApplicationContext)
- Business logic

Architecture Notes
------------------
All domain services follow the constructor pattern
``(config_manager, event_bus, logger, ...)``; each gets a logger named
after its class.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from merit.core.logging.logger import get_logger
from merit.modules.leaderboard import LeaderboardService
from merit.modules.ledger import LedgerService
from merit.modules.member import MemberService
from merit.modules.rating import RatingPeriodService, RatingQueryService, RatingWorkflowService
from merit.modules.refresh import RefreshCoordinator
from merit.modules.tier import TierPolicy, register_config_validators

if TYPE_CHECKING:
    from logging import Logger

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus

SERVICE_COUNT = 7


class ServiceContainer:
    """
    Dependency injection container for all domain services.

    Usage:
        container = ServiceContainer(config_manager, event_bus, logger)
        await container.initialize()
        await container.ledger.append("m-1", 50, TransactionKind.EARN, "Volunteer day")
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger

        self._tier_policy: Optional[TierPolicy] = None
        self._members: Optional[MemberService] = None
        self._ledger: Optional[LedgerService] = None
        self._leaderboard: Optional[LeaderboardService] = None
        self._periods: Optional[RatingPeriodService] = None
        self._ratings: Optional[RatingWorkflowService] = None
        self._rating_queries: Optional[RatingQueryService] = None

        self._initialized = False
        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            register_config_validators(self._config_manager)

            start = time.perf_counter()
            self._tier_policy = TierPolicy(self._config_manager)
            self._service_init_times["tier_policy"] = time.perf_counter() - start

            self._members = self._create_service("members", MemberService)
            self._ledger = self._create_service(
                "ledger", LedgerService, tier_policy=self._tier_policy
            )
            self._leaderboard = self._create_service(
                "leaderboard", LeaderboardService, tier_policy=self._tier_policy
            )
            self._periods = self._create_service("periods", RatingPeriodService)
            self._ratings = self._create_service(
                "ratings",
                RatingWorkflowService,
                ledger_service=self._ledger,
                tier_policy=self._tier_policy,
            )
            self._rating_queries = self._create_service("rating_queries", RatingQueryService)

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
            }
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
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        self._logger.info("Shutting down service container...")
        await self._event_bus.drain()
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "all_services_available": self._initialized
            and len(self._service_init_times) == SERVICE_COUNT,
        }

    # ========================================================================
    # Factories
    # ========================================================================

    def refresh_coordinator(
        self,
        load_fn: Callable[[], Any],
        on_result: Optional[Callable[[Any], Any]] = None,
    ) -> RefreshCoordinator[Any]:
        """A coordinator using ``refresh.*`` settings; the caller starts it."""
        return RefreshCoordinator.from_config(load_fn, on_result, self._config_manager)

    # ========================================================================
    # Services
    # ========================================================================

    def _require(self, service: Optional[Any]) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    @property
    def tier_policy(self) -> TierPolicy:
        return self._require(self._tier_policy)

    @property
    def members(self) -> MemberService:
        return self._require(self._members)

    @property
    def ledger(self) -> LedgerService:
        return self._require(self._ledger)

    @property
    def leaderboard(self) -> LeaderboardService:
        return self._require(self._leaderboard)

    @property
    def periods(self) -> RatingPeriodService:
        return self._require(self._periods)

    @property
    def ratings(self) -> RatingWorkflowService:
        return self._require(self._ratings)

    @property
    def rating_queries(self) -> RatingQueryService:
        return self._require(self._rating_queries)
