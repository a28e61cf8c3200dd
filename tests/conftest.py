"""
Pytest configuration and fixtures for the Merit engine test suite.

Purpose
-------
Shared fixtures for unit and integration tests: a real database per test,
a freshly loaded ConfigManager, a wired ServiceContainer and small data
builders.

Architecture Notes
------------------
- Unit tests use mocks or pure functions (fast, isolated)
- Integration tests run against a real database: a SQLite file per test
  by default, or a PostgreSQL testcontainer when MERIT_TEST_POSTGRES=1
- Environment variables are set before any ``merit`` import because
  ``Config`` loads on import
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_COLORS", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date, timedelta
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Generator, List

import pytest
import pytest_asyncio

from merit.core.config.manager import ConfigManager
from merit.core.database.service import DatabaseService
from merit.core.event.bus import EventBus
from merit.core.logging.logger import get_logger
from merit.core.services.container import ServiceContainer
from merit.domain.models.actor import Actor
from merit.domain.models.ledger import MemberRecord
from merit.domain.models.rating import CriterionSpec, RatingPeriodRecord

logger = get_logger(__name__)

USE_POSTGRES = os.getenv("MERIT_TEST_POSTGRES") == "1"


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture(autouse=True)
def config_manager() -> Generator[type, None, None]:
    """
    Fresh ConfigManager loaded from the repository's YAML defaults.

    Scope: function (overrides never leak between tests)
    """
    ConfigManager.reset()
    ConfigManager.load_defaults()
    yield ConfigManager
    ConfigManager.reset()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str, None, None]:
    """
    Start a PostgreSQL testcontainer once per session.

    Only requested when MERIT_TEST_POSTGRES=1.
    """
    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()
    try:
        yield container.get_connection_url()
    finally:
        logger.info("Stopping PostgreSQL testcontainer...")
        container.stop()


@pytest_asyncio.fixture
async def database(request: pytest.FixtureRequest, tmp_path) -> AsyncGenerator[str, None]:
    """
    Initialize DatabaseService against an empty schema.

    Scope: function (clean slate per test)
    """
    if USE_POSTGRES:
        url = request.getfixturevalue("postgres_url")
    else:
        url = f"sqlite+aiosqlite:///{tmp_path / 'merit-test.db'}"

    await DatabaseService.initialize(url)
    if USE_POSTGRES:
        await DatabaseService.drop_schema()
    await DatabaseService.create_schema()
    try:
        yield url
    finally:
        if USE_POSTGRES:
            await DatabaseService.drop_schema()
        await DatabaseService.shutdown()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def captured_events(event_bus: EventBus) -> List[Dict[str, Any]]:
    """Every payload published on ``event_bus``, in order."""
    events: List[Dict[str, Any]] = []
    event_bus.subscribe("*", events.append, identifier="test-capture")
    return events


@pytest_asyncio.fixture
async def services(
    database: str,
    config_manager: type,
    event_bus: EventBus,
) -> AsyncGenerator[ServiceContainer, None]:
    container = ServiceContainer(
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.services"),
    )
    await container.initialize()
    yield container
    await container.shutdown()


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """EventBus stand-in whose ``publish`` is an AsyncMock."""
    bus = mocker.MagicMock(spec=EventBus)
    bus.publish = mocker.AsyncMock()
    return bus


@pytest.fixture
def mock_config_manager(mocker):
    """ConfigManager stand-in returning each caller's default."""
    config = mocker.MagicMock()
    config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return config


# ============================================================================
# ACTORS AND DATA BUILDERS
# ============================================================================


@pytest.fixture
def admin() -> Actor:
    return Actor.admin("admin-1")


@pytest.fixture
def reviewer() -> Actor:
    return Actor.reviewer("reviewer-1")


@pytest.fixture
def make_member(services: ServiceContainer) -> Callable[..., Awaitable[MemberRecord]]:
    async def _make(
        member_id: str,
        full_name: str | None = None,
        unit_id: str | None = None,
        is_active: bool = True,
    ) -> MemberRecord:
        return await services.members.register_member(
            member_id,
            full_name or f"Member {member_id}",
            unit_id=unit_id,
            is_active=is_active,
        )

    return _make


DEFAULT_CRITERIA = [
    CriterionSpec(name="Attended meetings", is_required=True),
    CriterionSpec(name="Completed assigned tasks", is_required=True),
    CriterionSpec(name="Volunteered for events"),
]


@pytest.fixture
def make_period(
    services: ServiceContainer, admin: Actor
) -> Callable[..., Awaitable[RatingPeriodRecord]]:
    async def _make(
        title: str = "Q1 self-assessment",
        criteria: List[CriterionSpec] | None = None,
        activate: bool = True,
    ) -> RatingPeriodRecord:
        today = date.today()
        return await services.periods.create_period(
            admin,
            title,
            today - timedelta(days=7),
            today + timedelta(days=21),
            criteria if criteria is not None else DEFAULT_CRITERIA,
            activate=activate,
        )

    return _make


@pytest_asyncio.fixture
async def active_period(make_period) -> RatingPeriodRecord:
    """ACTIVE period with three criteria, the first two required."""
    return await make_period()
