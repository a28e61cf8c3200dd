"""
PointTransaction - immutable ledger entry.
Schema only. Rows are inserted, never updated or deleted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from merit.core.database.base import Base, IdMixin, utc_now


class PointTransaction(Base, IdMixin):
    """
    One signed point movement for one member.

    The id is assigned by the database sequence and doubles as the stable
    ordering key for history paging. At most one row exists per
    (member_id, source_activity_id, kind) when source_activity_id is set.
    """

    __tablename__ = "point_transactions"
    __table_args__ = (
        CheckConstraint("delta <> 0", name="delta_nonzero"),
        UniqueConstraint(
            "member_id",
            "source_activity_id",
            "kind",
            name="uq_point_transactions_source_activity",
        ),
        Index("ix_point_transactions_member_id_desc", "member_id", "id"),
        Index("ix_point_transactions_source", "source_activity_id"),
    )

    member_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    source_activity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
