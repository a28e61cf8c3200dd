"""
Rating period administration.

Purpose
-------
Creates and curates the self-assessment windows members rate themselves
in: the period's dates, its ordered criteria and its lifecycle.

Responsibilities
----------------
- Create periods (DRAFT, or ACTIVE immediately when asked) with criteria
- Edit title, description, dates and criteria while DRAFT
- Activate / complete / cancel through compare-and-set transitions
- Extend the end date of an ACTIVE period (never shorten it)
- Delete periods that have no approved ratings

Non-Responsibilities
--------------------
- Member self-ratings (RatingWorkflowService)
- Aggregate statistics (RatingQueryService)

Lifecycle
---------
DRAFT -> ACTIVE | CANCELLED, ACTIVE -> COMPLETED | CANCELLED. All
mutations require the ADMIN role.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Sequence, Union

from merit.core.database.service import DatabaseService
from merit.core.logging.logger import LogContext
from merit.core.validation.input_validator import InputValidator
from merit.database.models.enums import RatingPeriodStatus, SelfRatingStatus
from merit.database.models.rating import Criterion, RatingPeriod, SelfRating
from merit.domain.models.rating import CriterionSpec, RatingPeriodRecord
from merit.modules.rating.repository import RatingPeriodRepository, SelfRatingRepository
from merit.modules.rating.state_machine import ensure_period_transition, period_sources_for
from merit.modules.shared.base_service import BaseService
from merit.modules.shared.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus
    from merit.domain.models.actor import Actor

CriterionInput = Union[CriterionSpec, Mapping[str, Any]]

MAX_TITLE_LENGTH = 200
MAX_CRITERION_NAME_LENGTH = 200
MAX_CRITERIA = 100

_UNSET = object()


def normalize_criteria(criteria: Iterable[CriterionInput]) -> List[CriterionSpec]:
    """
    Validate criterion input into ``CriterionSpec`` values, keeping order.

    Mappings may use ``isRequired`` or ``is_required``.
    """
    if criteria is None or isinstance(criteria, (str, bytes, Mapping)):
        raise ValidationError("criteria", "Must be a list of criteria")

    specs: List[CriterionSpec] = []
    for idx, raw in enumerate(criteria):
        field_name = f"criteria[{idx}]"
        if isinstance(raw, CriterionSpec):
            name, description, is_required = raw.name, raw.description, raw.is_required
        elif isinstance(raw, Mapping):
            name = raw.get("name")
            description = raw.get("description")
            is_required = raw.get("isRequired", raw.get("is_required", False))
        else:
            raise ValidationError(field_name, "Must be a criterion object")

        if not isinstance(is_required, bool):
            raise ValidationError(f"{field_name}.is_required", "Must be true or false")

        specs.append(
            CriterionSpec(
                name=InputValidator.validate_string(
                    name, f"{field_name}.name", min_length=1, max_length=MAX_CRITERION_NAME_LENGTH
                ),
                description=InputValidator.validate_optional_string(
                    description, f"{field_name}.description"
                ),
                is_required=is_required,
            )
        )

    if len(specs) > MAX_CRITERIA:
        raise ValidationError("criteria", f"Cannot exceed {MAX_CRITERIA} criteria")
    return specs


def _build_criteria(specs: Sequence[CriterionSpec]) -> List[Criterion]:
    return [
        Criterion(
            name=spec.name,
            description=spec.description,
            is_required=spec.is_required,
            position=position,
        )
        for position, spec in enumerate(specs)
    ]


def _check_date_order(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ValidationError(
            "end_date",
            f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}",
        )


class RatingPeriodService(BaseService):
    """
    Public API
    ----------
    - create_period(actor, title, start_date, end_date, criteria, ...)
    - update_period(actor, period_id, ...)                 DRAFT only
    - activate_period / complete_period / cancel_period(actor, period_id)
    - extend_end_date(actor, period_id, new_end_date)     ACTIVE only
    - delete_period(actor, period_id)
    - get_period(period_id) / list_periods(status)
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._periods = RatingPeriodRepository(RatingPeriod, logger)
        self._ratings = SelfRatingRepository(SelfRating, logger)

    # =========================================================================
    # CREATE / EDIT
    # =========================================================================

    async def create_period(
        self,
        actor: Actor,
        title: str,
        start_date: Any,
        end_date: Any,
        criteria: Iterable[CriterionInput],
        description: Optional[str] = None,
        activate: bool = False,
    ) -> RatingPeriodRecord:
        """
        Create a period with ordered criteria.

        With ``activate=True`` the period opens for self-ratings at once.

        Raises:
            PermissionDeniedError: actor is not an admin
            ValidationError: empty title or criterion name, end before start
        """
        self.require_admin(actor, "create rating periods")

        title = InputValidator.validate_string(
            title, "title", min_length=1, max_length=MAX_TITLE_LENGTH
        )
        description = InputValidator.validate_optional_string(description, "description")
        start = InputValidator.validate_date(start_date, "start_date")
        end = InputValidator.validate_date(end_date, "end_date")
        _check_date_order(start, end)
        specs = normalize_criteria(criteria)

        status = RatingPeriodStatus.ACTIVE if activate else RatingPeriodStatus.DRAFT

        async with LogContext(member_id=actor.member_id, operation="period.create"):
            async with DatabaseService.get_transaction() as session:
                row = await self._periods.add(
                    session,
                    RatingPeriod(
                        title=title,
                        description=description,
                        start_date=start,
                        end_date=end,
                        status=status.value,
                        created_by=actor.member_id,
                        criteria=_build_criteria(specs),
                    ),
                )
                record = RatingPeriodRecord.from_db(row)

            self.log_operation(
                "period.create",
                period_id=record.id,
                status=record.status.value,
                criteria_count=len(record.criteria),
            )
            await self.emit_event("period.created", record.to_dict())
            if activate:
                await self.emit_event("period.activated", record.to_dict())
            return record

    async def update_period(
        self,
        actor: Actor,
        period_id: str,
        title: Optional[str] = None,
        start_date: Any = None,
        end_date: Any = None,
        criteria: Optional[Iterable[CriterionInput]] = None,
        description: Any = _UNSET,
    ) -> RatingPeriodRecord:
        """
        Edit a DRAFT period. ``criteria``, when given, replaces the whole list.

        Pass ``description=None`` to clear the description.

        Raises:
            ValidationError: period is not DRAFT or new values are invalid
        """
        self.require_admin(actor, "edit rating periods")

        if title is not None:
            title = InputValidator.validate_string(
                title, "title", min_length=1, max_length=MAX_TITLE_LENGTH
            )
        if description is not _UNSET:
            description = InputValidator.validate_optional_string(description, "description")
        start = InputValidator.validate_date(start_date, "start_date") if start_date is not None else None
        end = InputValidator.validate_date(end_date, "end_date") if end_date is not None else None
        specs = normalize_criteria(criteria) if criteria is not None else None

        async with DatabaseService.get_transaction() as session:
            row = await self._require_locked(session, period_id)
            if row.status != RatingPeriodStatus.DRAFT.value:
                raise ValidationError(
                    "status", f"Only DRAFT periods can be edited; period is {row.status}"
                )

            new_start = start or row.start_date
            new_end = end or row.end_date
            _check_date_order(new_start, new_end)

            if title is not None:
                row.title = title
            if description is not _UNSET:
                row.description = description  # type: ignore[assignment]
            row.start_date = new_start
            row.end_date = new_end
            if specs is not None:
                row.criteria = _build_criteria(specs)

            await session.flush()
            record = RatingPeriodRecord.from_db(await self._require(session, period_id))

        self.log_operation("period.update", period_id=period_id)
        await self.emit_event("period.updated", record.to_dict())
        return record

    async def extend_end_date(
        self, actor: Actor, period_id: str, new_end_date: Any
    ) -> RatingPeriodRecord:
        """
        Move an ACTIVE period's end date later.

        Raises:
            ValidationError: period not ACTIVE, or date not after the current end
        """
        self.require_admin(actor, "extend rating periods")
        new_end = InputValidator.validate_date(new_end_date, "end_date")

        async with DatabaseService.get_transaction() as session:
            row = await self._require_locked(session, period_id)
            if row.status != RatingPeriodStatus.ACTIVE.value:
                raise ValidationError(
                    "status", f"Only ACTIVE periods can be extended; period is {row.status}"
                )
            if new_end <= row.end_date:
                raise ValidationError(
                    "end_date",
                    f"New end date must be after {row.end_date.isoformat()}",
                )

            changed = await self._periods.compare_and_set(
                session, period_id, (RatingPeriodStatus.ACTIVE,), end_date=new_end
            )
            if not changed:
                await self._raise_transition_failure(session, period_id, RatingPeriodStatus.ACTIVE)
            record = RatingPeriodRecord.from_db(await self._require(session, period_id))

        self.log_operation(
            "period.extend", period_id=period_id, end_date=new_end.isoformat()
        )
        await self.emit_event("period.extended", record.to_dict())
        return record

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def activate_period(self, actor: Actor, period_id: str) -> RatingPeriodRecord:
        return await self._transition(actor, period_id, RatingPeriodStatus.ACTIVE, "period.activated")

    async def complete_period(self, actor: Actor, period_id: str) -> RatingPeriodRecord:
        return await self._transition(
            actor, period_id, RatingPeriodStatus.COMPLETED, "period.completed"
        )

    async def cancel_period(self, actor: Actor, period_id: str) -> RatingPeriodRecord:
        return await self._transition(
            actor, period_id, RatingPeriodStatus.CANCELLED, "period.cancelled"
        )

    async def _transition(
        self,
        actor: Actor,
        period_id: str,
        target: RatingPeriodStatus,
        event_name: str,
    ) -> RatingPeriodRecord:
        self.require_admin(actor, f"move rating periods to {target.value}")

        async with LogContext(member_id=actor.member_id, operation=event_name):
            async with DatabaseService.get_transaction() as session:
                changed = await self._periods.compare_and_set(
                    session, period_id, period_sources_for(target), status=target.value
                )
                if not changed:
                    await self._raise_transition_failure(session, period_id, target)
                record = RatingPeriodRecord.from_db(await self._require(session, period_id))

            self.log_operation(event_name, period_id=period_id, status=target.value)
            await self.emit_event(event_name, record.to_dict())
            return record

    async def _raise_transition_failure(
        self, session: AsyncSession, period_id: str, target: RatingPeriodStatus
    ) -> None:
        current = await self._periods.current_status(session, period_id)
        if current is None:
            raise NotFoundError("RatingPeriod", period_id)
        ensure_period_transition(current, target)
        # Legal from the observed status, so another writer moved it in between
        raise InvalidStateTransitionError(current.value, target.value, resource_type="RatingPeriod")

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_period(self, actor: Actor, period_id: str) -> None:
        """
        Delete a period together with its criteria and unapproved ratings.

        Raises:
            ValidationError: an APPROVED rating references the period (its
                ledger bonus would lose its source)
        """
        self.require_admin(actor, "delete rating periods")

        async with DatabaseService.get_transaction() as session:
            row = await self._require_locked(session, period_id)
            if await self._ratings.has_status(session, period_id, SelfRatingStatus.APPROVED):
                raise ValidationError(
                    "period_id", "Period has approved ratings and cannot be deleted"
                )
            removed = await self._ratings.count_where(session, SelfRating.period_id == period_id)
            await self._periods.delete(session, row)

        self.log_operation("period.delete", period_id=period_id, ratings_removed=removed)
        await self.emit_event(
            "period.deleted", {"id": period_id, "ratingsRemoved": removed}
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_period(self, period_id: str) -> RatingPeriodRecord:
        async with DatabaseService.get_session() as session:
            return RatingPeriodRecord.from_db(await self._require(session, period_id))

    async def list_periods(
        self, status: Optional[Union[RatingPeriodStatus, str]] = None
    ) -> List[RatingPeriodRecord]:
        """Periods newest first, optionally filtered by status."""
        if status is not None:
            status = InputValidator.validate_enum(status, RatingPeriodStatus, "status")
        async with DatabaseService.get_session() as session:
            rows = await self._periods.list_periods(session, status)
            return [RatingPeriodRecord.from_db(row) for row in rows]

    async def _require(self, session: AsyncSession, period_id: str) -> RatingPeriod:
        row = await self._periods.load(session, period_id)
        if row is None:
            raise NotFoundError("RatingPeriod", period_id)
        return row

    async def _require_locked(self, session: AsyncSession, period_id: str) -> RatingPeriod:
        row = await self._periods.get_for_update(session, period_id)
        if row is None:
            raise NotFoundError("RatingPeriod", period_id)
        return row
