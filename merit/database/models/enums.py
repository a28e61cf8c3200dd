"""
Database Model Enums
====================

Type-safe constants for categorical columns. Columns store ``.value`` as a
plain string; services convert back with ``Enum(value)``.
"""

from __future__ import annotations

import enum


class TransactionKind(str, enum.Enum):
    """
    Kind of ledger entry.

    EARN and BONUS carry positive deltas; DEDUCT and PENALTY negative ones.
    BONUS is reserved for approved self-ratings.
    """

    EARN = "EARN"
    BONUS = "BONUS"
    DEDUCT = "DEDUCT"
    PENALTY = "PENALTY"

    @property
    def is_credit(self) -> bool:
        return self in (TransactionKind.EARN, TransactionKind.BONUS)


class Tier(str, enum.Enum):
    """
    Performance tier, ordered POOR < AVERAGE < GOOD < EXCELLENT.

    Compare with ``rank`` rather than the string values.
    """

    POOR = "POOR"
    AVERAGE = "AVERAGE"
    GOOD = "GOOD"
    EXCELLENT = "EXCELLENT"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]

    @classmethod
    def ordered(cls) -> tuple["Tier", ...]:
        return (cls.POOR, cls.AVERAGE, cls.GOOD, cls.EXCELLENT)


_TIER_RANKS = {
    Tier.POOR: 0,
    Tier.AVERAGE: 1,
    Tier.GOOD: 2,
    Tier.EXCELLENT: 3,
}


class RatingPeriodStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class SelfRatingStatus(str, enum.Enum):
    """Lifecycle of one member's self-rating within one period."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_REVISION = "NEEDS_REVISION"


class MemberRole(str, enum.Enum):
    """
    Capability of the acting principal. Supplied by the caller's identity
    layer on every request; never stored.
    """

    MEMBER = "MEMBER"
    REVIEWER = "REVIEWER"
    ADMIN = "ADMIN"

    @property
    def can_review(self) -> bool:
        return self in (MemberRole.REVIEWER, MemberRole.ADMIN)
