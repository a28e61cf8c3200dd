"""
Leaderboard Aggregator

Purpose
-------
Ranks members by their derived point totals on demand. The leaderboard is
a read-only projection of the ledger; nothing is cached or persisted, so
two calls with no intervening append return identical results.

Responsibilities
----------------
- Compute every member's total in one aggregate query
  (members LEFT JOIN ledger, SUM, COALESCE 0)
- Order by total descending, ties by ascending member id
- Classify each total and compute summary statistics
- Filter by unit, explicit member set, name/id search, active flag

Non-Responsibilities
--------------------
- Storing snapshots or positions
- Writing to the ledger
"""

from __future__ import annotations

import math
from fractions import Fraction
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select

from merit.core.database.service import DatabaseService
from merit.core.validation.input_validator import InputValidator
from merit.database.models.enums import Tier
from merit.database.models.ledger import Member, PointTransaction
from merit.domain.models.leaderboard import (
    Leaderboard,
    LeaderboardEntry,
    LeaderboardScope,
    LeaderboardSummary,
)
from merit.modules.shared.base_service import BaseService
from merit.modules.shared.exceptions import NotFoundError
from merit.modules.tier.classifier import TierPolicy, classify

if TYPE_CHECKING:
    from logging import Logger

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus

_Row = Tuple[str, str, Optional[str], int]


def round_half_up(numerator: int, denominator: int) -> int:
    """Nearest integer, ties toward positive infinity."""
    return math.floor(Fraction(numerator, denominator) + Fraction(1, 2))


class LeaderboardService(BaseService):
    """
    Public API
    ----------
    - rank(scope) -> Leaderboard
    - position_of(member_id, scope) -> LeaderboardEntry
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        tier_policy: Optional[TierPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._tiers = tier_policy or TierPolicy(config_manager)

    def _normalize_scope(self, scope: Optional[LeaderboardScope]) -> LeaderboardScope:
        scope = scope or LeaderboardScope()
        max_search = int(self.get_config("leaderboard.max_search_length", 100))
        search = InputValidator.validate_optional_string(scope.search, "search", max_length=max_search)
        unit_id = InputValidator.validate_optional_string(scope.unit_id, "unit_id", max_length=64)
        member_ids = scope.member_ids
        if member_ids is not None:
            member_ids = frozenset(InputValidator.validate_id_list(sorted(member_ids), "member_ids"))
        return LeaderboardScope(
            unit_id=unit_id,
            member_ids=member_ids,
            search=search,
            include_inactive=scope.include_inactive,
        )

    async def _fetch_totals(self, scope: LeaderboardScope) -> List[_Row]:
        total = func.coalesce(func.sum(PointTransaction.delta), 0).label("total_points")
        stmt = (
            select(Member.id, Member.full_name, Member.unit_id, total)
            .outerjoin(PointTransaction, PointTransaction.member_id == Member.id)
            .group_by(Member.id, Member.full_name, Member.unit_id)
        )
        if not scope.include_inactive:
            stmt = stmt.where(Member.is_active.is_(True))
        if scope.unit_id is not None:
            stmt = stmt.where(Member.unit_id == scope.unit_id)
        if scope.member_ids is not None:
            stmt = stmt.where(Member.id.in_(sorted(scope.member_ids)))
        if scope.search:
            term = scope.search.lower()
            stmt = stmt.where(
                or_(
                    func.lower(Member.full_name).contains(term, autoescape=True),
                    func.lower(Member.id).contains(term, autoescape=True),
                )
            )

        async with DatabaseService.get_session() as session:
            result = await session.execute(stmt)
            return [(row[0], row[1], row[2], int(row[3])) for row in result.all()]

    def _build(self, rows: Iterable[_Row]) -> Leaderboard:
        # Sorted here so the tie order does not depend on database collation
        ordered = sorted(rows, key=lambda row: (-row[3], row[0]))
        thresholds = self._tiers.thresholds

        entries = tuple(
            LeaderboardEntry(
                position=index,
                member_id=member_id,
                full_name=full_name,
                total_points=total,
                tier=classify(total, thresholds),
                unit=unit_id,
            )
            for index, (member_id, full_name, unit_id, total) in enumerate(ordered, start=1)
        )

        if not entries:
            return Leaderboard(entries=(), summary=LeaderboardSummary())

        grand_total = sum(entry.total_points for entry in entries)
        summary = LeaderboardSummary(
            average_points=round_half_up(grand_total, len(entries)),
            excellent_count=sum(1 for entry in entries if entry.tier is Tier.EXCELLENT),
            total_points=grand_total,
            max_points=entries[0].total_points,
            total_members=len(entries),
        )
        return Leaderboard(entries=entries, summary=summary)

    async def rank(self, scope: Optional[LeaderboardScope] = None) -> Leaderboard:
        """
        Rank the members in ``scope`` (all active members by default).

        Example:
            >>> board = await leaderboard.rank(LeaderboardScope(unit_id="unit-a"))
            >>> board.entries[0].position
            1
        """
        scope = self._normalize_scope(scope)
        if scope.member_ids is not None and not scope.member_ids:
            return Leaderboard()

        board = self._build(await self._fetch_totals(scope))
        self.log.debug(
            "Leaderboard computed",
            extra={
                "members": board.summary.total_members,
                "unit_id": scope.unit_id,
                "search": scope.search,
            },
        )
        return board

    async def position_of(
        self,
        member_id: str,
        scope: Optional[LeaderboardScope] = None,
    ) -> LeaderboardEntry:
        """
        Raises:
            NotFoundError: member is not part of the ranked scope
        """
        board = await self.rank(scope)
        for entry in board.entries:
            if entry.member_id == member_id:
                return entry
        raise NotFoundError("LeaderboardEntry", member_id)
