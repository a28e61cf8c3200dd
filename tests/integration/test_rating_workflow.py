"""
Integration tests for the self-rating workflow: drafting, submission,
review and the BONUS ledger entry written on approval.
"""

import asyncio

import pytest

from merit.database.models.enums import SelfRatingStatus, Tier, TransactionKind
from merit.domain.models.actor import Actor
from merit.modules.shared.exceptions import (
    IncompleteSubmissionError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


@pytest.fixture
async def member(make_member):
    return await make_member("m-1", "Grace Hopper", unit_id="unit-a")


@pytest.fixture
def author():
    return Actor.member("m-1")


def all_but_optional(period):
    """Both required criteria met, the optional one not."""
    first, second, third = period.criteria
    return {first.id: True, second.id: {"met": True, "note": "All sprints"}, third.id: False}


async def submitted_rating(services, author, period):
    draft = await services.ratings.save_draft(author, period.id, all_but_optional(period))
    return await services.ratings.submit(author, draft.id)


@pytest.mark.integration
@pytest.mark.database
class TestSaveDraft:
    async def test_creates_draft_with_suggestion(self, services, member, author, active_period):
        rating = await services.ratings.save_draft(
            author, active_period.id, all_but_optional(active_period), "Solid quarter"
        )

        assert rating.status is SelfRatingStatus.DRAFT
        assert rating.suggested_tier is Tier.AVERAGE
        assert rating.self_assessment_text == "Solid quarter"
        assert rating.points_awarded is None

    async def test_second_save_updates_same_rating(self, services, member, author, active_period):
        first = await services.ratings.save_draft(author, active_period.id, {})
        assert first.suggested_tier is Tier.POOR

        everything = {item.id: True for item in active_period.criteria}
        second = await services.ratings.save_draft(author, active_period.id, everything)

        assert second.id == first.id
        assert second.suggested_tier is Tier.EXCELLENT

    async def test_unknown_criterion_rejected(self, services, member, author, active_period):
        with pytest.raises(ValidationError) as exc_info:
            await services.ratings.save_draft(author, active_period.id, {"nope": True})
        assert exc_info.value.field == "responses"

    async def test_malformed_response_rejected(self, services, member, author, active_period):
        criterion = active_period.criteria[0]
        with pytest.raises(ValidationError):
            await services.ratings.save_draft(author, active_period.id, {criterion.id: "yes"})
        with pytest.raises(ValidationError):
            await services.ratings.save_draft(author, active_period.id, [criterion.id])

    async def test_string_met_rejected(self, services, member, author, active_period):
        responses = {item.id: {"met": "false"} for item in active_period.criteria}

        with pytest.raises(ValidationError) as exc_info:
            await services.ratings.save_draft(author, active_period.id, responses)

        assert exc_info.value.field.startswith("responses.")
        assert await services.rating_queries.get_member_rating("m-1", active_period.id) is None

    async def test_period_must_be_active(self, services, member, author, make_period):
        draft_period = await make_period("Not yet open", activate=False)

        with pytest.raises(ValidationError) as exc_info:
            await services.ratings.save_draft(author, draft_period.id, {})
        assert exc_info.value.field == "period_id"

    async def test_unknown_period(self, services, member, author):
        with pytest.raises(NotFoundError):
            await services.ratings.save_draft(author, "missing-period", {})

    async def test_unknown_member(self, services, active_period):
        with pytest.raises(ValidationError) as exc_info:
            await services.ratings.save_draft(Actor.member("ghost"), active_period.id, {})
        assert exc_info.value.field == "member_id"

    async def test_cannot_edit_after_submit(self, services, member, author, active_period):
        await submitted_rating(services, author, active_period)

        with pytest.raises(ValidationError) as exc_info:
            await services.ratings.save_draft(author, active_period.id, {})
        assert exc_info.value.field == "status"

    async def test_draft_saved_event(self, services, member, author, active_period, captured_events):
        await services.ratings.save_draft(author, active_period.id, {})
        await services.ratings.save_draft(author, active_period.id, {})

        saved = [e for e in captured_events if e["event_name"] == "rating.draft_saved"]
        assert [e["created"] for e in saved] == [True, False]


@pytest.mark.integration
@pytest.mark.database
class TestSubmit:
    async def test_submit_sets_status_and_timestamp(self, services, member, author, active_period):
        rating = await submitted_rating(services, author, active_period)

        assert rating.status is SelfRatingStatus.SUBMITTED
        assert rating.submitted_at is not None
        assert rating.suggested_tier is Tier.AVERAGE

    async def test_required_criteria_enforced(self, services, member, author, active_period):
        first, second, third = active_period.criteria
        draft = await services.ratings.save_draft(
            author, active_period.id, {first.id: True, third.id: True}
        )

        with pytest.raises(IncompleteSubmissionError) as exc_info:
            await services.ratings.submit(author, draft.id)

        assert exc_info.value.missing_ids == [second.id]
        stored = await services.rating_queries.get_rating(draft.id)
        assert stored.status is SelfRatingStatus.DRAFT

    async def test_only_owner_submits(self, services, member, author, active_period, make_member):
        await make_member("m-2")
        draft = await services.ratings.save_draft(author, active_period.id, all_but_optional(active_period))

        with pytest.raises(PermissionDeniedError):
            await services.ratings.submit(Actor.member("m-2"), draft.id)

    async def test_double_submit_refused(self, services, member, author, active_period):
        rating = await submitted_rating(services, author, active_period)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await services.ratings.submit(author, rating.id)
        assert exc_info.value.current == "SUBMITTED"

    async def test_resubmit_after_revision(self, services, member, author, reviewer, active_period):
        rating = await submitted_rating(services, author, active_period)
        revised = await services.ratings.request_revision(reviewer, rating.id, "Add detail")
        assert revised.status is SelfRatingStatus.NEEDS_REVISION
        assert revised.criteria_responses == rating.criteria_responses

        edited = await services.ratings.save_draft(
            author, active_period.id, all_but_optional(active_period), "More detail"
        )
        assert edited.status is SelfRatingStatus.NEEDS_REVISION

        resubmitted = await services.ratings.submit(author, rating.id)
        assert resubmitted.status is SelfRatingStatus.SUBMITTED

    async def test_submit_requires_active_period(
        self, services, member, author, admin, active_period
    ):
        draft = await services.ratings.save_draft(author, active_period.id, all_but_optional(active_period))
        await services.periods.complete_period(admin, active_period.id)

        with pytest.raises(ValidationError):
            await services.ratings.submit(author, draft.id)


@pytest.mark.integration
@pytest.mark.database
class TestReview:
    async def test_approve_credits_reward(self, services, member, author, reviewer, active_period):
        rating = await submitted_rating(services, author, active_period)

        approved = await services.ratings.approve(reviewer, rating.id, "GOOD", "Well done")

        assert approved.status is SelfRatingStatus.APPROVED
        assert approved.final_tier is Tier.GOOD
        assert approved.points_awarded == 5
        assert approved.reviewer_id == "reviewer-1"
        assert approved.reviewed_at is not None
        assert await services.ledger.total_for("m-1") == 5

        entries = await services.ledger.history_for("m-1").to_list()
        assert len(entries) == 1
        assert entries[0].kind is TransactionKind.BONUS
        assert entries[0].source_activity_id == rating.id
        assert "GOOD" in entries[0].reason

    async def test_points_override(self, services, member, author, reviewer, active_period):
        rating = await submitted_rating(services, author, active_period)

        approved = await services.ratings.approve(reviewer, rating.id, Tier.POOR, points_override=12)

        assert approved.points_awarded == 12
        assert await services.ledger.total_for("m-1") == 12

    async def test_invalid_override_rejected(self, services, member, author, reviewer, active_period):
        rating = await submitted_rating(services, author, active_period)

        with pytest.raises(ValidationError):
            await services.ratings.approve(reviewer, rating.id, "GOOD", points_override=0)
        with pytest.raises(ValidationError):
            await services.ratings.approve(reviewer, rating.id, "LEGENDARY")

        assert (await services.rating_queries.get_rating(rating.id)).status is SelfRatingStatus.SUBMITTED

    async def test_failed_ledger_write_rolls_back_approval(
        self, services, member, author, reviewer, active_period
    ):
        rating = await submitted_rating(services, author, active_period)
        manual_id = await services.ledger.append(
            "m-1", 3, TransactionKind.BONUS, "Manual bonus", source_activity_id=rating.id
        )

        with pytest.raises(ValidationError):
            await services.ratings.approve(reviewer, rating.id, "GOOD")

        stored = await services.rating_queries.get_rating(rating.id)
        assert stored.status is SelfRatingStatus.SUBMITTED
        assert stored.points_awarded is None
        assert stored.final_tier is None
        entries = await services.ledger.history_for("m-1").to_list()
        assert [entry.id for entry in entries] == [manual_id]
        assert await services.ledger.total_for("m-1") == 3

    async def test_approve_twice_refused(self, services, member, author, reviewer, active_period):
        rating = await submitted_rating(services, author, active_period)
        await services.ratings.approve(reviewer, rating.id, "EXCELLENT")

        with pytest.raises(InvalidStateTransitionError):
            await services.ratings.approve(reviewer, rating.id, "EXCELLENT")

        assert await services.ledger.total_for("m-1") == 10

    async def test_draft_cannot_be_approved(self, services, member, author, reviewer, active_period):
        draft = await services.ratings.save_draft(author, active_period.id, {})

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await services.ratings.approve(reviewer, draft.id, "GOOD")
        assert exc_info.value.current == "DRAFT"

    async def test_missing_rating(self, services, reviewer):
        with pytest.raises(NotFoundError):
            await services.ratings.reject(reviewer, "no-such-rating")

    async def test_reject_has_no_ledger_effect(self, services, member, author, reviewer, active_period):
        rating = await submitted_rating(services, author, active_period)

        rejected = await services.ratings.reject(reviewer, rating.id, "Insufficient evidence")

        assert rejected.status is SelfRatingStatus.REJECTED
        assert rejected.points_awarded is None
        assert await services.ledger.total_for("m-1") == 0

    async def test_members_cannot_review(self, services, member, author, active_period):
        rating = await submitted_rating(services, author, active_period)

        with pytest.raises(PermissionDeniedError):
            await services.ratings.approve(author, rating.id, "EXCELLENT")
        with pytest.raises(PermissionDeniedError):
            await services.ratings.reject(author, rating.id)

    async def test_concurrent_approve_and_reject(
        self, services, member, author, reviewer, active_period
    ):
        rating = await submitted_rating(services, author, active_period)
        other = Actor.reviewer("reviewer-2")

        results = await asyncio.gather(
            services.ratings.approve(reviewer, rating.id, "GOOD"),
            services.ratings.reject(other, rating.id),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, BaseException)]
        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidStateTransitionError)

        final = await services.rating_queries.get_rating(rating.id)
        page = await services.ledger.recent_transactions(member_ids=["m-1"])
        if final.status is SelfRatingStatus.APPROVED:
            assert page.total == 1
        else:
            assert final.status is SelfRatingStatus.REJECTED
            assert page.total == 0

    async def test_approval_events(
        self, services, member, author, reviewer, active_period, captured_events
    ):
        rating = await submitted_rating(services, author, active_period)
        await services.ratings.approve(reviewer, rating.id, "GOOD")

        names = [e["event_name"] for e in captured_events]
        approved = next(e for e in captured_events if e["event_name"] == "rating.approved")
        assert names.index("rating.approved") < names.index("ledger.transaction_appended")
        assert approved["pointsAwarded"] == 5
        assert approved["transactionId"]


@pytest.mark.integration
@pytest.mark.database
class TestDeletion:
    async def test_owner_deletes_draft(self, services, member, author, active_period):
        draft = await services.ratings.save_draft(author, active_period.id, {})

        await services.ratings.delete_draft(author, draft.id)

        assert await services.rating_queries.get_member_rating("m-1", active_period.id) is None

    async def test_submitted_cannot_be_deleted_by_owner(self, services, member, author, active_period):
        rating = await submitted_rating(services, author, active_period)

        with pytest.raises(ValidationError):
            await services.ratings.delete_draft(author, rating.id)

    async def test_admin_delete_keeps_ledger(
        self, services, member, author, reviewer, admin, active_period
    ):
        rating = await submitted_rating(services, author, active_period)
        await services.ratings.approve(reviewer, rating.id, "EXCELLENT")

        await services.ratings.admin_delete(admin, rating.id)

        with pytest.raises(NotFoundError):
            await services.rating_queries.get_rating(rating.id)
        assert await services.ledger.total_for("m-1") == 10

    async def test_admin_delete_requires_role(self, services, member, author, active_period):
        draft = await services.ratings.save_draft(author, active_period.id, {})

        with pytest.raises(PermissionDeniedError):
            await services.ratings.admin_delete(author, draft.id)
