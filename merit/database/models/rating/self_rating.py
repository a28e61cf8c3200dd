"""
SelfRating - one member's self-assessment for one period.
Schema only. Status changes go through compare-and-set updates.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from merit.core.database.base import Base, TimestampMixin, UuidIdMixin


class SelfRating(Base, UuidIdMixin, TimestampMixin):
    """
    criteria_responses maps criterion id to ``{"met": bool, "note": str | None}``.
    points_awarded is non-null exactly when status is APPROVED.
    """

    __tablename__ = "self_ratings"
    __table_args__ = (
        UniqueConstraint("member_id", "period_id", name="uq_self_ratings_member_period"),
        Index("ix_self_ratings_period_status", "period_id", "status"),
        Index("ix_self_ratings_status_submitted", "status", "submitted_at"),
    )

    period_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rating_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    member_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    criteria_responses: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    self_assessment_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    suggested_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    final_tier: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    reviewer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewer_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    points_awarded: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
