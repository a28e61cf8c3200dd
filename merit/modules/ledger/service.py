"""
Ledger Store

Purpose
-------
Append-only record of point movements. A member's total is always the sum
of their transactions; no denormalized balance exists anywhere.

Responsibilities
----------------
- Validate and append transactions (own transaction or caller's session)
- Enforce the sign policy: EARN/BONUS positive, DEDUCT/PENALTY negative
- Enforce at most one entry per (member, source activity, kind)
- Derive totals, score snapshots and paginated history

Non-Responsibilities
--------------------
- Deciding how many points an activity is worth (callers decide)
- Ranking (LeaderboardService)

Concurrency
-----------
Appends are independent inserts; concurrent appends for one member need
no coordination and totals reflect every committed row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from merit.core.database.service import DatabaseService
from merit.core.logging.logger import LogContext
from merit.core.validation.input_validator import InputValidator
from merit.database.models.enums import TransactionKind
from merit.database.models.ledger import Member, PointTransaction
from merit.domain.models.ledger import MemberScoreSnapshot, PointTransactionRecord
from merit.modules.ledger.history import LedgerHistory
from merit.modules.shared.base_service import BaseService
from merit.modules.shared.exceptions import NotFoundError, ValidationError
from merit.modules.tier.classifier import TierPolicy

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus

MAX_REASON_LENGTH = 500


@dataclass(frozen=True)
class TransactionPage:
    """One page of the cross-member audit view."""

    items: List[PointTransactionRecord]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }


class LedgerService(BaseService):
    """
    Public API
    ----------
    - append(...) -> transaction id
    - append_in_session(session, ...) -> PointTransactionRecord
    - total_for(member_id) / totals_for(member_ids)
    - snapshot_for(member_id)
    - history_for(member_id, limit, offset, kind) -> LedgerHistory
    - recent_transactions(limit, offset, member_ids) -> TransactionPage
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

    # =========================================================================
    # APPEND
    # =========================================================================

    def _validate_entry(
        self,
        member_id: Any,
        delta: Any,
        kind: Any,
        reason: Any,
        source_activity_id: Any,
        occurred_at: Any,
    ) -> Dict[str, Any]:
        member_id = InputValidator.validate_identifier(member_id, "member_id")
        delta = InputValidator.validate_integer(delta, "delta", allow_zero=False)
        kind = InputValidator.validate_enum(kind, TransactionKind, "kind")

        if kind.is_credit and delta < 0:
            raise ValidationError("delta", f"{kind.value} requires a positive delta, got {delta}")
        if not kind.is_credit and delta > 0:
            raise ValidationError("delta", f"{kind.value} requires a negative delta, got {delta}")

        reason = InputValidator.validate_string(
            reason, "reason", min_length=1, max_length=MAX_REASON_LENGTH
        )
        source_activity_id = (
            InputValidator.validate_identifier(source_activity_id, "source_activity_id")
            if source_activity_id is not None
            else None
        )
        occurred = (
            InputValidator.validate_timestamp(occurred_at, "occurred_at")
            if occurred_at is not None
            else None
        )
        return {
            "member_id": member_id,
            "delta": delta,
            "kind": kind,
            "reason": reason,
            "source_activity_id": source_activity_id,
            "occurred_at": occurred,
        }

    async def append_in_session(
        self,
        session: AsyncSession,
        member_id: str,
        delta: int,
        kind: TransactionKind,
        reason: str,
        source_activity_id: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> PointTransactionRecord:
        """
        Validate and insert one entry inside a caller-owned transaction.

        Nothing is committed here and no event is published; the caller does
        both once its transaction succeeds (see ``announce``).

        Raises:
            ValidationError: zero delta, wrong sign for kind, empty reason,
                unknown member, or duplicate (member, source activity, kind)
        """
        entry = self._validate_entry(
            member_id, delta, kind, reason, source_activity_id, occurred_at
        )

        if await session.get(Member, entry["member_id"]) is None:
            raise ValidationError("member_id", f"Unknown member {entry['member_id']}")

        if entry["source_activity_id"] is not None:
            duplicate = await session.execute(
                select(PointTransaction.id).where(
                    PointTransaction.member_id == entry["member_id"],
                    PointTransaction.source_activity_id == entry["source_activity_id"],
                    PointTransaction.kind == entry["kind"].value,
                )
            )
            if duplicate.first() is not None:
                raise ValidationError(
                    "source_activity_id",
                    f"{entry['kind'].value} for activity {entry['source_activity_id']} "
                    "was already recorded",
                )

        row = PointTransaction(
            member_id=entry["member_id"],
            delta=entry["delta"],
            kind=entry["kind"].value,
            reason=entry["reason"],
            source_activity_id=entry["source_activity_id"],
        )
        if entry["occurred_at"] is not None:
            row.occurred_at = entry["occurred_at"]

        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ValidationError(
                "source_activity_id",
                f"{entry['kind'].value} for activity {entry['source_activity_id']} "
                "was already recorded",
            ) from exc

        record = PointTransactionRecord.from_db(row)
        self.log.debug(
            "Ledger entry staged",
            extra={"transaction_id": record.id, "member_id": record.member_id, "delta": record.delta},
        )
        return record

    async def append(
        self,
        member_id: str,
        delta: int,
        kind: TransactionKind,
        reason: str,
        source_activity_id: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> str:
        """
        Append one transaction atomically and return its id.

        Example:
            >>> tx_id = await ledger.append("m-1", 50, TransactionKind.EARN, "Volunteer day")
        """
        async with LogContext(member_id=str(member_id), operation="ledger.append"):
            async with DatabaseService.get_transaction() as session:
                record = await self.append_in_session(
                    session,
                    member_id,
                    delta,
                    kind,
                    reason,
                    source_activity_id=source_activity_id,
                    occurred_at=occurred_at,
                )

            self.log_operation(
                "ledger.append",
                transaction_id=record.id,
                member_id=record.member_id,
                delta=record.delta,
                kind=record.kind.value,
            )
            await self.announce(record)
            return record.id

    async def announce(self, record: PointTransactionRecord) -> None:
        """Publish ``ledger.transaction_appended`` for a committed entry."""
        await self.emit_event("ledger.transaction_appended", record.to_dict())

    # =========================================================================
    # TOTALS
    # =========================================================================

    async def total_for(self, member_id: str) -> int:
        """Sum of all deltas for the member; 0 when there are none."""
        async with DatabaseService.get_session() as session:
            return await self.total_in_session(session, member_id)

    async def total_in_session(self, session: AsyncSession, member_id: str) -> int:
        result = await session.execute(
            select(func.coalesce(func.sum(PointTransaction.delta), 0)).where(
                PointTransaction.member_id == member_id
            )
        )
        return int(result.scalar_one())

    async def totals_for(self, member_ids: Sequence[str]) -> Dict[str, int]:
        """Batched ``total_for``; every requested id is present in the result."""
        ids = list(dict.fromkeys(member_ids))
        totals = {member_id: 0 for member_id in ids}
        if not ids:
            return totals

        async with DatabaseService.get_session() as session:
            result = await session.execute(
                select(PointTransaction.member_id, func.sum(PointTransaction.delta))
                .where(PointTransaction.member_id.in_(ids))
                .group_by(PointTransaction.member_id)
            )
            for member_id, total in result.all():
                totals[member_id] = int(total or 0)
        return totals

    async def snapshot_for(self, member_id: str) -> MemberScoreSnapshot:
        """
        Raises:
            NotFoundError: member is not on the roster
        """
        async with DatabaseService.get_session() as session:
            if await session.get(Member, member_id) is None:
                raise NotFoundError("Member", member_id)
            total = await self.total_in_session(session, member_id)
        return MemberScoreSnapshot(
            member_id=member_id,
            total_points=total,
            tier=self._tiers.classify(total),
        )

    # =========================================================================
    # HISTORY
    # =========================================================================

    def _limits(self) -> tuple[int, int]:
        return (
            int(self.get_config("ledger.history.default_limit", 20)),
            int(self.get_config("ledger.history.max_limit", 100)),
        )

    def history_for(
        self,
        member_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        kind: Optional[TransactionKind] = None,
    ) -> LedgerHistory:
        """
        Newest-first history as a lazy, restartable async sequence.

        Arguments are validated immediately; no query runs until iteration.
        """
        default_limit, max_limit = self._limits()
        member_id = InputValidator.validate_identifier(member_id, "member_id")
        limit, offset = InputValidator.validate_pagination(
            default_limit if limit is None else limit, offset, max_limit
        )
        kind = InputValidator.validate_enum(kind, TransactionKind, "kind") if kind is not None else None
        return LedgerHistory(member_id, limit=limit, offset=offset, kind=kind, page_size=max_limit)

    async def recent_transactions(
        self,
        limit: Optional[int] = None,
        offset: int = 0,
        member_ids: Optional[Sequence[str]] = None,
    ) -> TransactionPage:
        """Audit view across members, newest first, with the total row count."""
        default_limit, max_limit = self._limits()
        limit, offset = InputValidator.validate_pagination(
            default_limit if limit is None else limit, offset, max_limit
        )
        conditions = []
        if member_ids is not None:
            ids = InputValidator.validate_id_list(list(member_ids), "member_ids")
            if not ids:
                return TransactionPage(items=[], total=0, limit=limit, offset=offset)
            conditions.append(PointTransaction.member_id.in_(ids))

        async with DatabaseService.get_session() as session:
            total = await session.execute(
                select(func.count()).select_from(PointTransaction).where(*conditions)
            )
            rows = await session.execute(
                select(PointTransaction)
                .where(*conditions)
                .order_by(PointTransaction.id.desc())
                .offset(offset)
                .limit(limit)
            )
            items = [PointTransactionRecord.from_db(row) for row in rows.scalars().all()]
            total_count = int(total.scalar_one())

        return TransactionPage(items=items, total=total_count, limit=limit, offset=offset)
