"""
Member - roster entry the ledger keys on.
Schema only. Points are never stored here; totals derive from the ledger.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from merit.core.database.base import Base, TimestampMixin


class Member(Base, TimestampMixin):
    """
    Organization member.

    - id: opaque identifier issued by the identity subsystem
    - full_name / unit_id: display and grouping for the leaderboard
    - is_active: inactive members are hidden from default leaderboards
    """

    __tablename__ = "members"
    __table_args__ = (Index("ix_members_unit_active", "unit_id", "is_active"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
