"""
Unit tests for service-level guards that run before any database access.

Services are built with a mocked EventBus and ConfigManager; a failing
guard must raise before a session is opened.
"""

import pytest

from merit.core.logging.logger import get_logger
from merit.database.models.enums import TransactionKind
from merit.domain.models.actor import Actor
from merit.modules.ledger.service import LedgerService
from merit.modules.rating import RatingPeriodService, RatingWorkflowService
from merit.modules.shared.exceptions import PermissionDeniedError, ValidationError


@pytest.fixture
def no_database(mocker):
    """Fail loudly if a guard lets a call through to the database."""
    get_transaction = mocker.patch(
        "merit.core.database.service.DatabaseService.get_transaction",
        side_effect=AssertionError("database reached"),
    )
    return get_transaction


@pytest.fixture
def ledger(mock_config_manager, mock_event_bus):
    return LedgerService(mock_config_manager, mock_event_bus, get_logger("tests.ledger"))


@pytest.fixture
def workflow(mock_config_manager, mock_event_bus, ledger):
    return RatingWorkflowService(
        mock_config_manager, mock_event_bus, get_logger("tests.ratings"), ledger_service=ledger
    )


@pytest.fixture
def periods(mock_config_manager, mock_event_bus):
    return RatingPeriodService(mock_config_manager, mock_event_bus, get_logger("tests.periods"))


@pytest.mark.unit
class TestLedgerGuards:
    async def test_sign_checked_before_session_use(self, ledger, mocker):
        session = mocker.AsyncMock()

        with pytest.raises(ValidationError):
            await ledger.append_in_session(session, "m-1", 10, TransactionKind.PENALTY, "Late")

        session.get.assert_not_called()
        session.add.assert_not_called()

    async def test_reason_length(self, ledger, mocker):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.append_in_session(
                mocker.AsyncMock(), "m-1", 10, TransactionKind.EARN, "x" * 501
            )
        assert exc_info.value.field == "reason"


@pytest.mark.unit
class TestWorkflowGuards:
    async def test_member_cannot_approve(self, workflow, no_database, mock_event_bus):
        with pytest.raises(PermissionDeniedError):
            await workflow.approve(Actor.member("m-1"), "r-1", "GOOD")

        no_database.assert_not_called()
        mock_event_bus.publish.assert_not_called()

    async def test_bad_tier_rejected_first(self, workflow, no_database, reviewer):
        with pytest.raises(ValidationError):
            await workflow.approve(reviewer, "r-1", "SUPERB")
        no_database.assert_not_called()

    async def test_responses_must_be_mapping(self, workflow, no_database):
        with pytest.raises(ValidationError):
            await workflow.save_draft(Actor.member("m-1"), "p-1", ["c-1"])
        no_database.assert_not_called()


@pytest.mark.unit
class TestPeriodGuards:
    async def test_reviewer_cannot_manage_periods(self, periods, no_database, reviewer):
        with pytest.raises(PermissionDeniedError):
            await periods.cancel_period(reviewer, "p-1")
        no_database.assert_not_called()

    async def test_dates_checked_before_write(self, periods, no_database, admin):
        with pytest.raises(ValidationError):
            await periods.create_period(admin, "Q1", "2026-03-01", "2026-02-01", [])
        no_database.assert_not_called()
