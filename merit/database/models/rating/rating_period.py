"""
RatingPeriod - a self-assessment window with its ordered criteria.
Schema only.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from merit.core.database.base import Base, TimestampMixin, UuidIdMixin

if TYPE_CHECKING:
    from .criterion import Criterion


class RatingPeriod(Base, UuidIdMixin, TimestampMixin):
    __tablename__ = "rating_periods"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="date_order"),
        Index("ix_rating_periods_status_start", "status", "start_date"),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    criteria: Mapped[List["Criterion"]] = relationship(
        back_populates="period",
        order_by="Criterion.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
