"""
Ledger domain records.

Purpose
-------
Immutable views of members, ledger entries and derived score snapshots.
Services build them from ORM rows with ``from_db`` so no session-bound
object escapes a transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from merit.database.models.enums import Tier, TransactionKind
from merit.domain.models.base import ensure_utc, iso_utc

if TYPE_CHECKING:
    from merit.database.models.ledger import Member as MemberDB
    from merit.database.models.ledger import PointTransaction as PointTransactionDB


@dataclass(frozen=True)
class MemberRecord:
    id: str
    full_name: str
    unit_id: Optional[str]
    is_active: bool
    created_at: datetime

    @classmethod
    def from_db(cls, row: "MemberDB") -> "MemberRecord":
        return cls(
            id=row.id,
            full_name=row.full_name,
            unit_id=row.unit_id,
            is_active=row.is_active,
            created_at=ensure_utc(row.created_at),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fullName": self.full_name,
            "unitId": self.unit_id,
            "isActive": self.is_active,
            "createdAt": iso_utc(self.created_at),
        }


@dataclass(frozen=True)
class PointTransactionRecord:
    """
    One ledger entry. ``id`` is the database-assigned sequence value as an
    opaque string; larger ids were appended later.
    """

    id: str
    member_id: str
    delta: int
    kind: TransactionKind
    reason: str
    source_activity_id: Optional[str]
    occurred_at: datetime

    @classmethod
    def from_db(cls, row: "PointTransactionDB") -> "PointTransactionRecord":
        return cls(
            id=str(row.id),
            member_id=row.member_id,
            delta=row.delta,
            kind=TransactionKind(row.kind),
            reason=row.reason,
            source_activity_id=row.source_activity_id,
            occurred_at=ensure_utc(row.occurred_at),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "memberId": self.member_id,
            "delta": self.delta,
            "kind": self.kind.value,
            "reason": self.reason,
            "sourceActivityId": self.source_activity_id,
            "occurredAt": iso_utc(self.occurred_at),
        }


@dataclass(frozen=True)
class MemberScoreSnapshot:
    """Derived ``{memberId, totalPoints, tier}``; never persisted."""

    member_id: str
    total_points: int
    tier: Tier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memberId": self.member_id,
            "totalPoints": self.total_points,
            "tier": self.tier.value,
        }
