"""
Self-rating workflow.

Purpose
-------
Drives one member's self-assessment for one period from draft to review
outcome, and awards the approval bonus on the ledger.

Responsibilities
----------------
- Save drafts (creating the rating on first save) with a suggested tier
- Submit drafts once every required criterion is met
- Approve (with ledger BONUS), reject, or send back for revision
- Delete drafts (owner) and ratings (reviewers)

Non-Responsibilities
--------------------
- Period administration (RatingPeriodService)
- Ledger arithmetic (LedgerService)

Concurrency
-----------
Every status change is a compare-and-set update restricted to the statuses
the transition table allows as sources. When two reviewers act on the same
submission, exactly one update matches; the other caller gets
``InvalidStateTransitionError``. Approval and its BONUS entry share one
database transaction, and the ledger's (member, source activity, kind)
uniqueness backs up the one-bonus-per-rating rule.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError

from merit.core.database.base import utc_now
from merit.core.database.service import DatabaseService
from merit.core.logging.logger import LogContext
from merit.core.validation.input_validator import InputValidator
from merit.database.models.enums import (
    RatingPeriodStatus,
    SelfRatingStatus,
    Tier,
    TransactionKind,
)
from merit.database.models.ledger import Member
from merit.database.models.rating import RatingPeriod, SelfRating
from merit.domain.models.rating import CriterionResponse, RatingPeriodRecord, SelfRatingRecord
from merit.modules.rating.repository import RatingPeriodRepository, SelfRatingRepository
from merit.modules.rating.state_machine import (
    EDITABLE_RATING_STATUSES,
    ensure_transition,
    sources_for,
)
from merit.modules.shared.base_service import BaseService
from merit.modules.shared.exceptions import (
    IncompleteSubmissionError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from merit.modules.tier.classifier import TierPolicy

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus
    from merit.domain.models.actor import Actor
    from merit.modules.ledger.service import LedgerService

MAX_ASSESSMENT_LENGTH = 5000
MAX_NOTES_LENGTH = 2000
MAX_RESPONSE_NOTE_LENGTH = 1000


class RatingWorkflowService(BaseService):
    """
    Public API
    ----------
    - save_draft(actor, period_id, responses, assessment_text)
    - submit(actor, rating_id)
    - approve(actor, rating_id, final_tier, reviewer_notes, points_override)
    - reject(actor, rating_id, reviewer_notes)
    - request_revision(actor, rating_id, reviewer_notes)
    - delete_draft(actor, rating_id)
    - admin_delete(actor, rating_id)
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger_service: LedgerService,
        tier_policy: Optional[TierPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger = ledger_service
        self._tiers = tier_policy or TierPolicy(config_manager)
        self._periods = RatingPeriodRepository(RatingPeriod, logger)
        self._ratings = SelfRatingRepository(SelfRating, logger)

    # =========================================================================
    # MEMBER SIDE
    # =========================================================================

    @staticmethod
    def _normalize_responses(responses: Any) -> Dict[str, CriterionResponse]:
        if not isinstance(responses, Mapping):
            raise ValidationError("responses", "Must map criterion ids to responses")

        normalized: Dict[str, CriterionResponse] = {}
        for key, raw in responses.items():
            criterion_id = InputValidator.validate_identifier(key, "responses")
            try:
                response = CriterionResponse.from_raw(raw)
            except TypeError as exc:
                raise ValidationError(f"responses.{criterion_id}", str(exc)) from exc
            if response.note is not None and len(response.note) > MAX_RESPONSE_NOTE_LENGTH:
                raise ValidationError(
                    f"responses.{criterion_id}",
                    f"Note cannot exceed {MAX_RESPONSE_NOTE_LENGTH} characters",
                )
            normalized[criterion_id] = response
        return normalized

    async def save_draft(
        self,
        actor: Actor,
        period_id: str,
        responses: Mapping[str, Any],
        assessment_text: Optional[str] = None,
    ) -> SelfRatingRecord:
        """
        Create or update the actor's rating for an ACTIVE period.

        The rating keeps its status (DRAFT or NEEDS_REVISION); the suggested
        tier is recomputed from the new responses.

        Raises:
            NotFoundError: period does not exist
            ValidationError: period not ACTIVE, unknown criteria, unknown
                member, or the rating is already SUBMITTED/APPROVED/REJECTED
        """
        period_id = InputValidator.validate_identifier(period_id, "period_id")
        normalized = self._normalize_responses(responses)
        assessment_text = InputValidator.validate_optional_string(
            assessment_text, "assessment_text", max_length=MAX_ASSESSMENT_LENGTH
        )
        stored = {key: value.to_dict() for key, value in normalized.items()}

        async with LogContext(member_id=actor.member_id, operation="rating.save_draft"):
            async with DatabaseService.get_transaction() as session:
                period = await self._require_active_period(session, period_id)

                unknown = sorted(set(normalized) - period.criterion_ids)
                if unknown:
                    raise ValidationError(
                        "responses", f"Unknown criteria for this period: {', '.join(unknown)}"
                    )
                if await session.get(Member, actor.member_id) is None:
                    raise ValidationError("member_id", f"Unknown member {actor.member_id}")

                met = sum(1 for item in period.criteria if item.id in normalized and normalized[item.id].met)
                suggested = self._tiers.suggest(met, len(period.criteria))

                existing = await self._ratings.find_for_member(session, actor.member_id, period_id)
                if existing is None:
                    created = True
                    try:
                        row = await self._ratings.add(
                            session,
                            SelfRating(
                                period_id=period_id,
                                member_id=actor.member_id,
                                criteria_responses=stored,
                                self_assessment_text=assessment_text,
                                suggested_tier=suggested.value,
                                status=SelfRatingStatus.DRAFT.value,
                            ),
                        )
                    except IntegrityError as exc:
                        raise ValidationError(
                            "period_id", "A self-rating for this period already exists"
                        ) from exc
                    rating_id = row.id
                else:
                    created = False
                    rating_id = existing.id
                    if SelfRatingStatus(existing.status) not in EDITABLE_RATING_STATUSES:
                        raise ValidationError(
                            "status", f"Rating is {existing.status} and can no longer be edited"
                        )
                    changed = await self._ratings.compare_and_set(
                        session,
                        rating_id,
                        EDITABLE_RATING_STATUSES,
                        criteria_responses=stored,
                        self_assessment_text=assessment_text,
                        suggested_tier=suggested.value,
                    )
                    if not changed:
                        current = await self._ratings.current_status(session, rating_id)
                        raise ValidationError(
                            "status",
                            f"Rating is {current.value if current else 'gone'} "
                            "and can no longer be edited",
                        )

                record = SelfRatingRecord.from_db(await self._require_rating(session, rating_id))

            self.log_operation(
                "rating.save_draft",
                rating_id=record.id,
                period_id=period_id,
                created=created,
                suggested_tier=record.suggested_tier.value,
            )
            await self.emit_event("rating.draft_saved", {**record.to_dict(), "created": created})
            return record

    async def submit(self, actor: Actor, rating_id: str) -> SelfRatingRecord:
        """
        Submit the actor's own DRAFT or NEEDS_REVISION rating for review.

        Raises:
            PermissionDeniedError: actor does not own the rating
            IncompleteSubmissionError: a required criterion is not met
            InvalidStateTransitionError: rating is not DRAFT/NEEDS_REVISION
            ValidationError: the period is no longer ACTIVE
        """
        async with LogContext(member_id=actor.member_id, operation="rating.submit"):
            async with DatabaseService.get_transaction() as session:
                row = await self._ratings.get_for_update(session, rating_id)
                if row is None:
                    raise NotFoundError("SelfRating", rating_id)
                self.require_owner(actor, row.member_id, "submit this self-rating")

                current = SelfRatingRecord.from_db(row)
                ensure_transition(current.status, SelfRatingStatus.SUBMITTED)

                period = await self._require_active_period(session, current.period_id)
                missing = current.missing_required(period.criteria)
                if missing:
                    raise IncompleteSubmissionError([(item.id, item.name) for item in missing])

                suggested = self._tiers.suggest(
                    current.met_count(period.criteria), len(period.criteria)
                )
                changed = await self._ratings.compare_and_set(
                    session,
                    rating_id,
                    sources_for(SelfRatingStatus.SUBMITTED),
                    status=SelfRatingStatus.SUBMITTED.value,
                    suggested_tier=suggested.value,
                    submitted_at=utc_now(),
                )
                if not changed:
                    await self._raise_transition_failure(
                        session, rating_id, SelfRatingStatus.SUBMITTED
                    )
                record = SelfRatingRecord.from_db(await self._require_rating(session, rating_id))

            self.log_operation("rating.submit", rating_id=rating_id, period_id=record.period_id)
            await self.emit_event("rating.submitted", record.to_dict())
            return record

    async def delete_draft(self, actor: Actor, rating_id: str) -> None:
        """
        Delete the actor's own rating while it is still a DRAFT.

        Raises:
            ValidationError: rating is past DRAFT
        """
        async with DatabaseService.get_transaction() as session:
            row = await self._ratings.get_for_update(session, rating_id)
            if row is None:
                raise NotFoundError("SelfRating", rating_id)
            self.require_owner(actor, row.member_id, "delete this self-rating")

            deleted = await self._ratings.delete_if_status(
                session, rating_id, (SelfRatingStatus.DRAFT,)
            )
            if not deleted:
                current = await self._ratings.current_status(session, rating_id)
                raise ValidationError(
                    "status",
                    f"Only DRAFT ratings can be deleted; rating is "
                    f"{current.value if current else 'gone'}",
                )
            member_id, period_id = row.member_id, row.period_id

        self.log_operation("rating.delete_draft", rating_id=rating_id)
        await self.emit_event(
            "rating.deleted",
            {"id": rating_id, "memberId": member_id, "periodId": period_id, "deletedBy": actor.member_id},
        )

    # =========================================================================
    # REVIEWER SIDE
    # =========================================================================

    async def approve(
        self,
        actor: Actor,
        rating_id: str,
        final_tier: Any,
        reviewer_notes: Optional[str] = None,
        points_override: Optional[int] = None,
    ) -> SelfRatingRecord:
        """
        Approve a SUBMITTED rating and credit the member.

        ``points_awarded`` is ``points_override`` when given, otherwise the
        reward table entry for ``final_tier``. The rating update and the
        BONUS ledger entry commit together or not at all.

        Raises:
            PermissionDeniedError: actor cannot review
            ValidationError: bad tier or non-positive override
            InvalidStateTransitionError: rating is not SUBMITTED (including
                when a concurrent review won)
        """
        self.require_reviewer(actor, "approve self-ratings")
        tier = InputValidator.validate_enum(final_tier, Tier, "final_tier")
        reviewer_notes = InputValidator.validate_optional_string(
            reviewer_notes, "reviewer_notes", max_length=MAX_NOTES_LENGTH
        )
        if points_override is not None:
            points = InputValidator.validate_positive_integer(points_override, "points_override")
        else:
            points = self._tiers.reward_points_for(tier)

        async with LogContext(member_id=actor.member_id, operation="rating.approve"):
            async with DatabaseService.get_transaction() as session:
                changed = await self._ratings.compare_and_set(
                    session,
                    rating_id,
                    sources_for(SelfRatingStatus.APPROVED),
                    status=SelfRatingStatus.APPROVED.value,
                    final_tier=tier.value,
                    reviewer_notes=reviewer_notes,
                    reviewer_id=actor.member_id,
                    points_awarded=points,
                    reviewed_at=utc_now(),
                )
                if not changed:
                    await self._raise_transition_failure(
                        session, rating_id, SelfRatingStatus.APPROVED
                    )

                record = SelfRatingRecord.from_db(await self._require_rating(session, rating_id))
                period = await self._periods.load(session, record.period_id)
                title = period.title if period is not None else record.period_id

                transaction = await self._ledger.append_in_session(
                    session,
                    record.member_id,
                    points,
                    TransactionKind.BONUS,
                    f"Self-rating approved ({tier.value}): {title}",
                    source_activity_id=record.id,
                )

            self.log_operation(
                "rating.approve",
                rating_id=rating_id,
                final_tier=tier.value,
                points_awarded=points,
                transaction_id=transaction.id,
            )
            await self.emit_event(
                "rating.approved", {**record.to_dict(), "transactionId": transaction.id}
            )
            await self._ledger.announce(transaction)
            return record

    async def reject(
        self,
        actor: Actor,
        rating_id: str,
        reviewer_notes: Optional[str] = None,
    ) -> SelfRatingRecord:
        """Reject a SUBMITTED rating. No ledger effect."""
        self.require_reviewer(actor, "reject self-ratings")
        return await self._review(
            actor, rating_id, SelfRatingStatus.REJECTED, reviewer_notes, "rating.rejected"
        )

    async def request_revision(
        self,
        actor: Actor,
        rating_id: str,
        reviewer_notes: Optional[str] = None,
    ) -> SelfRatingRecord:
        """Send a SUBMITTED rating back to its owner; responses are preserved."""
        self.require_reviewer(actor, "request revisions")
        return await self._review(
            actor,
            rating_id,
            SelfRatingStatus.NEEDS_REVISION,
            reviewer_notes,
            "rating.revision_requested",
        )

    async def _review(
        self,
        actor: Actor,
        rating_id: str,
        target: SelfRatingStatus,
        reviewer_notes: Optional[str],
        event_name: str,
    ) -> SelfRatingRecord:
        reviewer_notes = InputValidator.validate_optional_string(
            reviewer_notes, "reviewer_notes", max_length=MAX_NOTES_LENGTH
        )

        async with LogContext(member_id=actor.member_id, operation=event_name):
            async with DatabaseService.get_transaction() as session:
                changed = await self._ratings.compare_and_set(
                    session,
                    rating_id,
                    sources_for(target),
                    status=target.value,
                    reviewer_notes=reviewer_notes,
                    reviewer_id=actor.member_id,
                    reviewed_at=utc_now(),
                )
                if not changed:
                    await self._raise_transition_failure(session, rating_id, target)
                record = SelfRatingRecord.from_db(await self._require_rating(session, rating_id))

            self.log_operation(event_name, rating_id=rating_id, status=target.value)
            await self.emit_event(event_name, record.to_dict())
            return record

    async def admin_delete(self, actor: Actor, rating_id: str) -> None:
        """
        Delete any rating regardless of status.

        Ledger entries already credited for it stay in place.
        """
        self.require_reviewer(actor, "delete self-ratings")

        async with DatabaseService.get_transaction() as session:
            row = await self._ratings.get(session, rating_id)
            if row is None:
                raise NotFoundError("SelfRating", rating_id)
            member_id, period_id, status = row.member_id, row.period_id, row.status
            if not await self._ratings.delete_if_status(session, rating_id):
                raise NotFoundError("SelfRating", rating_id)

        self.log_operation("rating.admin_delete", rating_id=rating_id, status=status)
        await self.emit_event(
            "rating.deleted",
            {"id": rating_id, "memberId": member_id, "periodId": period_id, "deletedBy": actor.member_id},
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _require_active_period(
        self, session: AsyncSession, period_id: str
    ) -> RatingPeriodRecord:
        row = await self._periods.load(session, period_id)
        if row is None:
            raise NotFoundError("RatingPeriod", period_id)
        if row.status != RatingPeriodStatus.ACTIVE.value:
            raise ValidationError(
                "period_id", f"Rating period is {row.status} and not open for self-ratings"
            )
        return RatingPeriodRecord.from_db(row)

    async def _require_rating(self, session: AsyncSession, rating_id: str) -> SelfRating:
        row = await self._ratings.load(session, rating_id)
        if row is None:
            raise NotFoundError("SelfRating", rating_id)
        return row

    async def _raise_transition_failure(
        self, session: AsyncSession, rating_id: str, target: SelfRatingStatus
    ) -> None:
        current = await self._ratings.current_status(session, rating_id)
        if current is None:
            raise NotFoundError("SelfRating", rating_id)
        self.log.info(
            "Self-rating transition refused",
            extra={"rating_id": rating_id, "current": current.value, "attempted": target.value},
        )
        raise InvalidStateTransitionError(current.value, target.value)
