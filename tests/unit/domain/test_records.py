"""
Tests for the immutable domain records and their serialization.
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from merit.database.models.enums import (
    MemberRole,
    RatingPeriodStatus,
    SelfRatingStatus,
    Tier,
    TransactionKind,
)
from merit.domain.models.actor import Actor
from merit.domain.models.base import ensure_utc, iso_utc
from merit.domain.models.leaderboard import Leaderboard, LeaderboardSummary
from merit.domain.models.ledger import PointTransactionRecord
from merit.domain.models.rating import (
    CriterionRecord,
    CriterionResponse,
    RatingPeriodRecord,
    SelfRatingRecord,
)
from merit.modules.leaderboard.service import round_half_up

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

CRITERIA = (
    CriterionRecord(id="c-1", name="Attendance", description=None, is_required=True, position=0),
    CriterionRecord(id="c-2", name="Tasks", description=None, is_required=True, position=1),
    CriterionRecord(id="c-3", name="Events", description=None, is_required=False, position=2),
)


def make_rating(responses):
    return SelfRatingRecord(
        id="r-1",
        period_id="p-1",
        member_id="m-1",
        criteria_responses=responses,
        self_assessment_text=None,
        suggested_tier=Tier.AVERAGE,
        status=SelfRatingStatus.DRAFT,
        final_tier=None,
        reviewer_notes=None,
        reviewer_id=None,
        points_awarded=None,
        submitted_at=None,
        reviewed_at=None,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.mark.domain
class TestActor:
    def test_roles(self):
        assert Actor.admin("a").is_admin and Actor.admin("a").can_review
        assert Actor.reviewer("r").can_review and not Actor.reviewer("r").is_admin
        assert not Actor.member("m").can_review
        assert Actor("m").role is MemberRole.MEMBER


@pytest.mark.domain
class TestCriterionResponse:
    def test_from_raw_shapes(self):
        assert CriterionResponse.from_raw(True) == CriterionResponse(met=True)
        assert CriterionResponse.from_raw({"met": True, "note": "every week"}).note == "every week"
        assert CriterionResponse.from_raw({"note": ""}) == CriterionResponse(met=False, note="")
        assert CriterionResponse.from_raw({"met": False, "note": None}).note is None

    def test_rejects_unknown_shape(self):
        with pytest.raises(TypeError):
            CriterionResponse.from_raw("yes")

    @pytest.mark.parametrize("met", ["false", "true", 0, 1, None])
    def test_met_must_be_bool(self, met):
        with pytest.raises(TypeError):
            CriterionResponse.from_raw({"met": met})


@pytest.mark.domain
class TestSelfRatingRecord:
    def test_met_count_ignores_unknown_ids(self):
        rating = make_rating(
            {
                "c-1": CriterionResponse(met=True),
                "c-3": CriterionResponse(met=True),
                "stale": CriterionResponse(met=True),
            }
        )
        assert rating.met_count(CRITERIA) == 2

    def test_missing_required_in_period_order(self):
        rating = make_rating({"c-2": CriterionResponse(met=False)})
        assert [item.id for item in rating.missing_required(CRITERIA)] == ["c-1", "c-2"]

    def test_to_dict_is_camel_case(self):
        data = make_rating({"c-1": CriterionResponse(met=True)}).to_dict()

        assert data["periodId"] == "p-1"
        assert data["criteriaResponses"] == {"c-1": {"met": True, "note": None}}
        assert data["pointsAwarded"] is None
        assert data["createdAt"] == "2026-03-01T12:00:00+00:00"


@pytest.mark.domain
class TestRatingPeriodRecord:
    def test_from_db_orders_criteria(self):
        rows = [
            SimpleNamespace(id="c-2", name="B", description=None, is_required=False, position=1),
            SimpleNamespace(id="c-1", name="A", description=None, is_required=True, position=0),
        ]
        row = SimpleNamespace(
            id="p-1",
            title="Q1",
            description=None,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 3, 31),
            status="ACTIVE",
            created_by="admin-1",
            created_at=datetime(2026, 1, 1),
            criteria=rows,
        )

        record = RatingPeriodRecord.from_db(row)

        assert record.status is RatingPeriodStatus.ACTIVE
        assert [item.id for item in record.criteria] == ["c-1", "c-2"]
        assert [item.id for item in record.required_criteria] == ["c-1"]
        assert record.created_at.tzinfo is timezone.utc
        assert record.to_dict()["endDate"] == "2026-03-31"


@pytest.mark.domain
class TestLedgerRecords:
    def test_transaction_to_dict(self):
        record = PointTransactionRecord(
            id="7",
            member_id="m-1",
            delta=-100,
            kind=TransactionKind.DEDUCT,
            reason="Missed duty",
            source_activity_id=None,
            occurred_at=NOW,
        )
        assert record.to_dict()["kind"] == "DEDUCT"
        assert record.to_dict()["occurredAt"] == iso_utc(NOW)

    def test_ensure_utc(self):
        assert ensure_utc(None) is None
        assert ensure_utc(datetime(2026, 1, 1)).tzinfo is timezone.utc

    def test_empty_leaderboard(self):
        assert Leaderboard().to_dict() == {
            "entries": [],
            "summary": LeaderboardSummary().to_dict(),
        }


@pytest.mark.domain
class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "numerator, denominator, expected",
        [
            (5, 2, 3),
            (7, 2, 4),
            (-5, 2, -2),
            (10, 4, 3),
            (10, 3, 3),
            (0, 5, 0),
        ],
    )
    def test_ties_round_up(self, numerator, denominator, expected):
        assert round_half_up(numerator, denominator) == expected
