"""
Criterion - one checklist item of a rating period.
Schema only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from merit.core.database.base import Base, UuidIdMixin

if TYPE_CHECKING:
    from .rating_period import RatingPeriod


class Criterion(Base, UuidIdMixin):
    __tablename__ = "rating_criteria"
    __table_args__ = (
        Index("ix_rating_criteria_period_position", "period_id", "position"),
    )

    period_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rating_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    period: Mapped["RatingPeriod"] = relationship(back_populates="criteria")
