"""
Domain records for the Merit engine.

These are separate from the SQLAlchemy models (schema only). Services
convert ORM rows into these immutable records before returning.
"""

from merit.domain.models.actor import Actor
from merit.domain.models.base import ensure_utc, iso_date, iso_utc
from merit.domain.models.leaderboard import (
    Leaderboard,
    LeaderboardEntry,
    LeaderboardScope,
    LeaderboardSummary,
)
from merit.domain.models.ledger import (
    MemberRecord,
    MemberScoreSnapshot,
    PointTransactionRecord,
)
from merit.domain.models.rating import (
    CriterionRecord,
    CriterionResponse,
    CriterionSpec,
    RatingPeriodRecord,
    SelfRatingRecord,
)

__all__ = [
    "Actor",
    "ensure_utc",
    "iso_date",
    "iso_utc",
    "Leaderboard",
    "LeaderboardEntry",
    "LeaderboardScope",
    "LeaderboardSummary",
    "MemberRecord",
    "MemberScoreSnapshot",
    "PointTransactionRecord",
    "CriterionRecord",
    "CriterionResponse",
    "CriterionSpec",
    "RatingPeriodRecord",
    "SelfRatingRecord",
]
