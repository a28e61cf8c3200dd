"""
Data access for rating periods and self-ratings.

Status changes use compare-and-set updates: the UPDATE only matches rows
still in one of the expected statuses, and the caller inspects the row
count instead of trusting a previously read status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, List, Optional

from sqlalchemy import delete, select, update

from merit.core.database.base import utc_now
from merit.database.models.enums import RatingPeriodStatus, SelfRatingStatus
from merit.database.models.rating import RatingPeriod, SelfRating
from merit.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class RatingPeriodRepository(BaseRepository[RatingPeriod]):
    async def load(self, session: AsyncSession, period_id: str) -> Optional[RatingPeriod]:
        """Fresh row with criteria, discarding any stale identity-map copy."""
        result = await session.execute(
            select(RatingPeriod)
            .where(RatingPeriod.id == period_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_periods(
        self,
        session: AsyncSession,
        status: Optional[RatingPeriodStatus] = None,
    ) -> List[RatingPeriod]:
        conditions = []
        if status is not None:
            conditions.append(RatingPeriod.status == status.value)
        return await self.find_many_where(
            session,
            *conditions,
            order_by=[RatingPeriod.start_date.desc(), RatingPeriod.created_at.desc()],
        )

    async def current_status(
        self, session: AsyncSession, period_id: str
    ) -> Optional[RatingPeriodStatus]:
        result = await session.execute(
            select(RatingPeriod.status).where(RatingPeriod.id == period_id)
        )
        value = result.scalar_one_or_none()
        return RatingPeriodStatus(value) if value is not None else None

    async def compare_and_set(
        self,
        session: AsyncSession,
        period_id: str,
        expected: Iterable[RatingPeriodStatus],
        **values: Any,
    ) -> bool:
        values.setdefault("updated_at", utc_now())
        result = await session.execute(
            update(RatingPeriod)
            .where(
                RatingPeriod.id == period_id,
                RatingPeriod.status.in_([status.value for status in expected]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SelfRatingRepository(BaseRepository[SelfRating]):
    async def load(self, session: AsyncSession, rating_id: str) -> Optional[SelfRating]:
        result = await session.execute(
            select(SelfRating)
            .where(SelfRating.id == rating_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_for_member(
        self, session: AsyncSession, member_id: str, period_id: str
    ) -> Optional[SelfRating]:
        result = await session.execute(
            select(SelfRating)
            .where(SelfRating.member_id == member_id, SelfRating.period_id == period_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def current_status(
        self, session: AsyncSession, rating_id: str
    ) -> Optional[SelfRatingStatus]:
        result = await session.execute(
            select(SelfRating.status).where(SelfRating.id == rating_id)
        )
        value = result.scalar_one_or_none()
        return SelfRatingStatus(value) if value is not None else None

    async def compare_and_set(
        self,
        session: AsyncSession,
        rating_id: str,
        expected: Iterable[SelfRatingStatus],
        **values: Any,
    ) -> bool:
        """``UPDATE ... WHERE id = :id AND status IN (:expected)``; True if one row changed."""
        values.setdefault("updated_at", utc_now())
        result = await session.execute(
            update(SelfRating)
            .where(
                SelfRating.id == rating_id,
                SelfRating.status.in_([status.value for status in expected]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_if_status(
        self,
        session: AsyncSession,
        rating_id: str,
        expected: Optional[Iterable[SelfRatingStatus]] = None,
    ) -> bool:
        stmt = delete(SelfRating).where(SelfRating.id == rating_id)
        if expected is not None:
            stmt = stmt.where(SelfRating.status.in_([status.value for status in expected]))
        result = await session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1

    async def has_status(
        self, session: AsyncSession, period_id: str, status: SelfRatingStatus
    ) -> bool:
        return await self.exists(
            session,
            SelfRating.period_id == period_id,
            SelfRating.status == status.value,
        )
