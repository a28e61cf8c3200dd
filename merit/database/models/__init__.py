"""
Database Models Package
=======================

SQLAlchemy ORM models for the Merit engine, grouped by domain:

- ledger: Member roster and the append-only PointTransaction ledger
- rating: RatingPeriod, Criterion and SelfRating
- system: persisted configuration overrides
- enums: shared type-safe enumerations

All models are schema-only and use ``Mapped[]`` with ``mapped_column()``.
"""

from merit.core.database.base import Base

from .enums import MemberRole, RatingPeriodStatus, SelfRatingStatus, Tier, TransactionKind
from .ledger import Member, PointTransaction
from .rating import Criterion, RatingPeriod, SelfRating
from .system import ConfigEntry

__all__ = [
    "Base",
    "Member",
    "PointTransaction",
    "RatingPeriod",
    "Criterion",
    "SelfRating",
    "ConfigEntry",
    "MemberRole",
    "RatingPeriodStatus",
    "SelfRatingStatus",
    "Tier",
    "TransactionKind",
]
