"""
Rating domain records.

Purpose
-------
Immutable views of rating periods, their criteria and self-ratings, plus
the pure rules that only depend on a record's own fields (which required
criteria are unmet, how many criteria are met).

Non-Responsibilities
--------------------
- Allowed status transitions (merit.modules.rating.state_machine)
- Tier suggestion thresholds (merit.modules.tier)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from merit.database.models.enums import RatingPeriodStatus, SelfRatingStatus, Tier
from merit.domain.models.base import ensure_utc, iso_date, iso_utc

if TYPE_CHECKING:
    from merit.database.models.rating import Criterion as CriterionDB
    from merit.database.models.rating import RatingPeriod as RatingPeriodDB
    from merit.database.models.rating import SelfRating as SelfRatingDB


# ============================================================================
# CRITERIA
# ============================================================================


@dataclass(frozen=True)
class CriterionSpec:
    """Input shape for creating or replacing a period's criteria."""

    name: str
    description: Optional[str] = None
    is_required: bool = False


@dataclass(frozen=True)
class CriterionRecord:
    id: str
    name: str
    description: Optional[str]
    is_required: bool
    position: int

    @classmethod
    def from_db(cls, row: "CriterionDB") -> "CriterionRecord":
        return cls(
            id=row.id,
            name=row.name,
            description=row.description,
            is_required=row.is_required,
            position=row.position,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isRequired": self.is_required,
            "position": self.position,
        }


@dataclass(frozen=True)
class CriterionResponse:
    met: bool
    note: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "CriterionResponse":
        if isinstance(raw, CriterionResponse):
            return raw
        if isinstance(raw, bool):
            return cls(met=raw)
        if isinstance(raw, Mapping):
            met = raw.get("met", False)
            if not isinstance(met, bool):
                raise TypeError(f"'met' must be true or false, got {met!r}")
            note = raw.get("note")
            return cls(met=met, note=str(note) if note is not None else None)
        raise TypeError(f"Unsupported criterion response: {raw!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {"met": self.met, "note": self.note}


# ============================================================================
# RATING PERIOD
# ============================================================================


@dataclass(frozen=True)
class RatingPeriodRecord:
    id: str
    title: str
    description: Optional[str]
    start_date: date
    end_date: date
    status: RatingPeriodStatus
    created_by: str
    created_at: datetime
    criteria: Tuple[CriterionRecord, ...] = field(default_factory=tuple)

    @classmethod
    def from_db(cls, row: "RatingPeriodDB") -> "RatingPeriodRecord":
        return cls(
            id=row.id,
            title=row.title,
            description=row.description,
            start_date=row.start_date,
            end_date=row.end_date,
            status=RatingPeriodStatus(row.status),
            created_by=row.created_by,
            created_at=ensure_utc(row.created_at),
            criteria=tuple(
                CriterionRecord.from_db(item)
                for item in sorted(row.criteria, key=lambda c: c.position)
            ),
        )

    @property
    def required_criteria(self) -> Tuple[CriterionRecord, ...]:
        return tuple(item for item in self.criteria if item.is_required)

    @property
    def criterion_ids(self) -> frozenset:
        return frozenset(item.id for item in self.criteria)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "startDate": iso_date(self.start_date),
            "endDate": iso_date(self.end_date),
            "status": self.status.value,
            "createdBy": self.created_by,
            "createdAt": iso_utc(self.created_at),
            "criteria": [item.to_dict() for item in self.criteria],
        }


# ============================================================================
# SELF RATING
# ============================================================================


@dataclass(frozen=True)
class SelfRatingRecord:
    """
    Snapshot of a self-rating. ``points_awarded`` is set iff APPROVED.
    """

    id: str
    period_id: str
    member_id: str
    criteria_responses: Dict[str, CriterionResponse]
    self_assessment_text: Optional[str]
    suggested_tier: Tier
    status: SelfRatingStatus
    final_tier: Optional[Tier]
    reviewer_notes: Optional[str]
    reviewer_id: Optional[str]
    points_awarded: Optional[int]
    submitted_at: Optional[datetime]
    reviewed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_db(cls, row: "SelfRatingDB") -> "SelfRatingRecord":
        return cls(
            id=row.id,
            period_id=row.period_id,
            member_id=row.member_id,
            criteria_responses={
                key: CriterionResponse.from_raw(value)
                for key, value in (row.criteria_responses or {}).items()
            },
            self_assessment_text=row.self_assessment_text,
            suggested_tier=Tier(row.suggested_tier),
            status=SelfRatingStatus(row.status),
            final_tier=Tier(row.final_tier) if row.final_tier else None,
            reviewer_notes=row.reviewer_notes,
            reviewer_id=row.reviewer_id,
            points_awarded=row.points_awarded,
            submitted_at=ensure_utc(row.submitted_at),
            reviewed_at=ensure_utc(row.reviewed_at),
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )

    def met_count(self, criteria: Tuple[CriterionRecord, ...]) -> int:
        return sum(
            1
            for item in criteria
            if item.id in self.criteria_responses and self.criteria_responses[item.id].met
        )

    def missing_required(
        self, criteria: Tuple[CriterionRecord, ...]
    ) -> List[CriterionRecord]:
        """Required criteria whose response is absent or not met, in period order."""
        return [
            item
            for item in criteria
            if item.is_required
            and not (
                item.id in self.criteria_responses and self.criteria_responses[item.id].met
            )
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "periodId": self.period_id,
            "memberId": self.member_id,
            "criteriaResponses": {
                key: value.to_dict() for key, value in self.criteria_responses.items()
            },
            "selfAssessmentText": self.self_assessment_text,
            "suggestedTier": self.suggested_tier.value,
            "status": self.status.value,
            "finalTier": self.final_tier.value if self.final_tier else None,
            "reviewerNotes": self.reviewer_notes,
            "reviewerId": self.reviewer_id,
            "pointsAwarded": self.points_awarded,
            "submittedAt": iso_utc(self.submitted_at),
            "reviewedAt": iso_utc(self.reviewed_at),
            "createdAt": iso_utc(self.created_at),
            "updatedAt": iso_utc(self.updated_at),
        }
