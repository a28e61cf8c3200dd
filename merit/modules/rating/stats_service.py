"""
Read side of the rating module: lookups, queues and statistics.

All methods are read-only and run in a plain session. Statistics are
computed with grouped aggregate queries, never by loading every rating.

Counting rules
--------------
- participated: ratings that left DRAFT
- submitted:    SUBMITTED, APPROVED or REJECTED
- pending:      SUBMITTED (overview), SUBMITTED + NEEDS_REVISION (per period)
- points:       ``points_awarded`` of APPROVED ratings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import func, select

from merit.core.database.service import DatabaseService
from merit.core.validation.input_validator import InputValidator
from merit.database.models.enums import SelfRatingStatus, Tier
from merit.database.models.rating import RatingPeriod, SelfRating
from merit.domain.models.rating import RatingPeriodRecord, SelfRatingRecord
from merit.modules.rating.repository import RatingPeriodRepository, SelfRatingRepository
from merit.modules.shared.base_service import BaseService
from merit.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.elements import ColumnElement

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus

SUBMITTED_STATUSES = (
    SelfRatingStatus.SUBMITTED,
    SelfRatingStatus.APPROVED,
    SelfRatingStatus.REJECTED,
)


def _empty_distribution() -> Dict[Tier, int]:
    return {tier: 0 for tier in Tier.ordered()}


def _average(total: int, count: int) -> float:
    return round(total / count, 2) if count else 0.0


def _distribution_dict(distribution: Dict[Tier, int]) -> Dict[str, int]:
    return {tier.value: distribution[tier] for tier in reversed(Tier.ordered())}


@dataclass(frozen=True)
class _Aggregate:
    status_counts: Dict[SelfRatingStatus, int]
    distribution: Dict[Tier, int]
    points_count: int
    points_total: int

    def count(self, *statuses: SelfRatingStatus) -> int:
        return sum(self.status_counts[status] for status in statuses)

    @property
    def total(self) -> int:
        return sum(self.status_counts.values())

    @property
    def average_points(self) -> float:
        return _average(self.points_total, self.points_count)


@dataclass(frozen=True)
class MemberRatingStats:
    member_id: str
    total_participated: int
    total_submitted: int
    total_approved: int
    average_points: float
    total_points: int
    distribution: Dict[Tier, int]
    recent_approvals: List[SelfRatingRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memberId": self.member_id,
            "totalParticipated": self.total_participated,
            "totalSubmitted": self.total_submitted,
            "totalApproved": self.total_approved,
            "avgPoints": self.average_points,
            "totalPoints": self.total_points,
            "distribution": _distribution_dict(self.distribution),
            "recentRatings": [item.to_dict() for item in self.recent_approvals],
        }


@dataclass(frozen=True)
class PeriodRatingStats:
    period: RatingPeriodRecord
    status_counts: Dict[SelfRatingStatus, int]
    distribution: Dict[Tier, int]
    total_submissions: int
    pending_approvals: int
    total_approved: int
    average_points: float
    total_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": {
                "id": self.period.id,
                "title": self.period.title,
                "startDate": self.period.start_date.isoformat(),
                "endDate": self.period.end_date.isoformat(),
                "status": self.period.status.value,
            },
            "statusCounts": {status.value: count for status, count in self.status_counts.items()},
            "distribution": _distribution_dict(self.distribution),
            "totalSubmissions": self.total_submissions,
            "pendingApprovals": self.pending_approvals,
            "totalApproved": self.total_approved,
            "avgPoints": self.average_points,
            "totalPoints": self.total_points,
        }


@dataclass(frozen=True)
class RatingOverview:
    total_periods: int
    total_submissions: int
    pending_approvals: int
    average_points: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPeriods": self.total_periods,
            "totalSubmissions": self.total_submissions,
            "pendingApprovals": self.pending_approvals,
            "avgPoints": self.average_points,
        }


class RatingQueryService(BaseService):
    """
    Public API
    ----------
    - get_rating(rating_id) / get_member_rating(member_id, period_id)
    - history_for(member_id)
    - pending_reviews(period_id=None)
    - period_ratings(period_id, status=None)
    - member_stats(member_id) / period_stats(period_id) / overview_stats()
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._periods = RatingPeriodRepository(RatingPeriod, logger)
        self._ratings = SelfRatingRepository(SelfRating, logger)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_rating(self, rating_id: str) -> SelfRatingRecord:
        async with DatabaseService.get_session() as session:
            row = await self._ratings.get(session, rating_id)
            if row is None:
                raise NotFoundError("SelfRating", rating_id)
            return SelfRatingRecord.from_db(row)

    async def get_member_rating(
        self, member_id: str, period_id: str
    ) -> Optional[SelfRatingRecord]:
        """The member's rating for the period, or None if they have not started one."""
        async with DatabaseService.get_session() as session:
            row = await self._ratings.find_for_member(session, member_id, period_id)
            return SelfRatingRecord.from_db(row) if row is not None else None

    async def history_for(self, member_id: str) -> List[SelfRatingRecord]:
        """All of a member's ratings, newest first."""
        async with DatabaseService.get_session() as session:
            rows = await self._ratings.find_many_where(
                session,
                SelfRating.member_id == member_id,
                order_by=[SelfRating.created_at.desc(), SelfRating.id],
            )
            return [SelfRatingRecord.from_db(row) for row in rows]

    async def pending_reviews(self, period_id: Optional[str] = None) -> List[SelfRatingRecord]:
        """SUBMITTED ratings awaiting review, most recently submitted first."""
        conditions = [SelfRating.status == SelfRatingStatus.SUBMITTED.value]
        if period_id is not None:
            conditions.append(SelfRating.period_id == period_id)
        async with DatabaseService.get_session() as session:
            rows = await self._ratings.find_many_where(
                session,
                *conditions,
                order_by=[SelfRating.submitted_at.desc(), SelfRating.id],
            )
            return [SelfRatingRecord.from_db(row) for row in rows]

    async def period_ratings(
        self,
        period_id: str,
        status: Optional[Union[SelfRatingStatus, str]] = None,
    ) -> List[SelfRatingRecord]:
        if status is not None:
            status = InputValidator.validate_enum(status, SelfRatingStatus, "status")
        async with DatabaseService.get_session() as session:
            await self._require_period(session, period_id)
            conditions = [SelfRating.period_id == period_id]
            if status is not None:
                conditions.append(SelfRating.status == status.value)
            rows = await self._ratings.find_many_where(
                session,
                *conditions,
                order_by=[
                    SelfRating.reviewed_at.desc().nulls_last(),
                    SelfRating.submitted_at.desc().nulls_last(),
                    SelfRating.id,
                ],
            )
            return [SelfRatingRecord.from_db(row) for row in rows]

    # =========================================================================
    # STATISTICS
    # =========================================================================

    async def member_stats(self, member_id: str) -> MemberRatingStats:
        limit = int(self.get_config("rating.recent_approvals_limit", 5))

        async with DatabaseService.get_session() as session:
            aggregate = await self._aggregate(session, SelfRating.member_id == member_id)
            recent = await self._ratings.find_many_where(
                session,
                SelfRating.member_id == member_id,
                SelfRating.status == SelfRatingStatus.APPROVED.value,
                order_by=[SelfRating.reviewed_at.desc(), SelfRating.id],
                limit=limit,
            )

        return MemberRatingStats(
            member_id=member_id,
            total_participated=aggregate.total - aggregate.count(SelfRatingStatus.DRAFT),
            total_submitted=aggregate.count(*SUBMITTED_STATUSES),
            total_approved=aggregate.count(SelfRatingStatus.APPROVED),
            average_points=aggregate.average_points,
            total_points=aggregate.points_total,
            distribution=aggregate.distribution,
            recent_approvals=[SelfRatingRecord.from_db(row) for row in recent],
        )

    async def period_stats(self, period_id: str) -> PeriodRatingStats:
        async with DatabaseService.get_session() as session:
            period = RatingPeriodRecord.from_db(await self._require_period(session, period_id))
            aggregate = await self._aggregate(session, SelfRating.period_id == period_id)

        return PeriodRatingStats(
            period=period,
            status_counts=aggregate.status_counts,
            distribution=aggregate.distribution,
            total_submissions=aggregate.total - aggregate.count(SelfRatingStatus.DRAFT),
            pending_approvals=aggregate.count(
                SelfRatingStatus.SUBMITTED, SelfRatingStatus.NEEDS_REVISION
            ),
            total_approved=aggregate.count(SelfRatingStatus.APPROVED),
            average_points=aggregate.average_points,
            total_points=aggregate.points_total,
        )

    async def overview_stats(self) -> RatingOverview:
        async with DatabaseService.get_session() as session:
            total_periods = await self._periods.count_where(session)
            aggregate = await self._aggregate(session)

        return RatingOverview(
            total_periods=total_periods,
            total_submissions=aggregate.total,
            pending_approvals=aggregate.count(SelfRatingStatus.SUBMITTED),
            average_points=aggregate.average_points,
        )

    async def _aggregate(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> _Aggregate:
        status_counts = {status: 0 for status in SelfRatingStatus}
        result = await session.execute(
            select(SelfRating.status, func.count())
            .where(*conditions)
            .group_by(SelfRating.status)
        )
        for status, count in result.all():
            status_counts[SelfRatingStatus(status)] = int(count)

        approved = SelfRating.status == SelfRatingStatus.APPROVED.value

        distribution = _empty_distribution()
        result = await session.execute(
            select(SelfRating.final_tier, func.count())
            .where(*conditions, approved, SelfRating.final_tier.is_not(None))
            .group_by(SelfRating.final_tier)
        )
        for tier, count in result.all():
            distribution[Tier(tier)] = int(count)

        result = await session.execute(
            select(
                func.count(SelfRating.points_awarded),
                func.coalesce(func.sum(SelfRating.points_awarded), 0),
            ).where(*conditions, approved, SelfRating.points_awarded.is_not(None))
        )
        points_count, points_total = result.one()

        return _Aggregate(
            status_counts=status_counts,
            distribution=distribution,
            points_count=int(points_count),
            points_total=int(points_total),
        )

    async def _require_period(self, session: AsyncSession, period_id: str) -> RatingPeriod:
        row = await self._periods.get(session, period_id)
        if row is None:
            raise NotFoundError("RatingPeriod", period_id)
        return row
