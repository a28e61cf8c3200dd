"""
Integration tests for application startup and the service container.
"""

import pytest

from merit.core.database.service import DatabaseService
from merit.core.event.bus import EventBus
from merit.core.infra.application_context import ApplicationContext
from merit.core.logging.logger import get_logger
from merit.core.services.container import ServiceContainer
from merit.database.models.enums import TransactionKind
from merit.modules.refresh import RefreshCoordinator


@pytest.mark.integration
class TestApplicationContext:
    async def test_startup_and_shutdown(self, tmp_path):
        context = ApplicationContext()
        await context.initialize(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
            create_schema=True,
        )
        try:
            assert context.is_initialized
            services = context.services
            await services.members.register_member("m-1", "Ada")
            await services.ledger.append("m-1", 30, TransactionKind.EARN, "Onboarding")

            board = await services.leaderboard.rank()
            assert board.entries[0].total_points == 30
            assert (await services.health_check())["all_services_available"]
        finally:
            await context.shutdown()

        assert not context.is_initialized
        assert not DatabaseService.is_initialized()

    async def test_double_initialize_refused(self, tmp_path):
        context = ApplicationContext()
        await context.initialize(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
            create_schema=True,
        )
        try:
            with pytest.raises(RuntimeError):
                await context.initialize()
        finally:
            await context.shutdown()

    async def test_failed_startup_cleans_up(self):
        context = ApplicationContext()

        with pytest.raises(RuntimeError):
            await context.initialize(database_url="notadriver://nowhere")

        assert not context.is_initialized
        assert not DatabaseService.is_initialized()

    def test_accessors_before_initialize(self):
        context = ApplicationContext()
        with pytest.raises(RuntimeError):
            context.services
        with pytest.raises(RuntimeError):
            context.event_bus


@pytest.mark.unit
class TestServiceContainer:
    def test_services_guarded_before_initialize(self, config_manager):
        container = ServiceContainer(config_manager, EventBus(), get_logger("tests.container"))

        with pytest.raises(RuntimeError):
            container.ledger

    async def test_initialize_wires_everything(self, config_manager):
        container = ServiceContainer(config_manager, EventBus(), get_logger("tests.container"))
        await container.initialize()

        health = await container.health_check()
        assert health["initialized"]
        assert health["service_count"] == 7
        assert container.ledger is not None

        coordinator = container.refresh_coordinator(lambda: None)
        assert isinstance(coordinator, RefreshCoordinator)
        assert coordinator.settings.interval_seconds == 30.0

        await container.shutdown()
        with pytest.raises(RuntimeError):
            container.periods
