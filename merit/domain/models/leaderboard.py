"""
Leaderboard domain records.

A Leaderboard is a read-only projection computed on demand; nothing here
is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

from merit.database.models.enums import Tier


@dataclass(frozen=True)
class LeaderboardScope:
    """
    Which members to rank.

    - unit_id: only members of this unit
    - member_ids: only these members
    - search: case-insensitive substring of full name or member id
    - include_inactive: inactive members are excluded unless set
    """

    unit_id: Optional[str] = None
    member_ids: Optional[FrozenSet[str]] = None
    search: Optional[str] = None
    include_inactive: bool = False


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    member_id: str
    full_name: str
    total_points: int
    tier: Tier
    unit: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "memberId": self.member_id,
            "fullName": self.full_name,
            "totalPoints": self.total_points,
            "tier": self.tier.value,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class LeaderboardSummary:
    average_points: int = 0
    excellent_count: int = 0
    total_points: int = 0
    max_points: int = 0
    total_members: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "averagePoints": self.average_points,
            "excellentCount": self.excellent_count,
            "totalPoints": self.total_points,
            "maxPoints": self.max_points,
            "totalMembers": self.total_members,
        }


@dataclass(frozen=True)
class Leaderboard:
    entries: Tuple[LeaderboardEntry, ...] = field(default_factory=tuple)
    summary: LeaderboardSummary = field(default_factory=LeaderboardSummary)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "summary": self.summary.to_dict(),
        }
