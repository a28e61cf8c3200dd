"""
Integration tests for DatabaseService.

Runs against the per-test SQLite file, or PostgreSQL when
MERIT_TEST_POSTGRES=1.
"""

import pytest
from sqlalchemy import func, select, text

from merit.core.database.base import Base
from merit.core.database.service import DatabaseNotInitializedError, DatabaseService
from merit.database.models.ledger import Member
from merit.modules.shared.exceptions import ValidationError


async def member_count() -> int:
    async with DatabaseService.get_session() as session:
        result = await session.execute(select(func.count()).select_from(Member))
        return int(result.scalar_one())


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseService:
    async def test_connection(self, database):
        async with DatabaseService.get_session() as session:
            result = await session.execute(text("SELECT 1"))
            assert result.scalar_one() == 1

        assert await DatabaseService.health_check() is True

    async def test_transaction_commits(self, database):
        async with DatabaseService.get_transaction() as session:
            session.add(Member(id="m-1", full_name="Ada"))

        assert await member_count() == 1

    async def test_domain_error_rolls_back(self, database):
        with pytest.raises(ValidationError):
            async with DatabaseService.get_transaction() as session:
                session.add(Member(id="m-1", full_name="Ada"))
                await session.flush()
                raise ValidationError("member_id", "rejected after flush")

        assert await member_count() == 0

    async def test_session_does_not_commit(self, database):
        async with DatabaseService.get_session() as session:
            session.add(Member(id="m-1", full_name="Ada"))
            await session.flush()

        assert await member_count() == 0

    async def test_schema_has_tables(self, database):
        assert {
            "members",
            "point_transactions",
            "rating_periods",
            "rating_criteria",
            "self_ratings",
            "config_entries",
        } <= set(Base.metadata.tables)


@pytest.mark.integration
class TestUninitialized:
    async def test_requires_initialize(self):
        assert not DatabaseService.is_initialized()
        assert await DatabaseService.health_check() is False
        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass
