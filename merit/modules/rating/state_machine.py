"""
Explicit transition tables for self-ratings and rating periods.

Every status change in the rating module is checked here first and then
applied with a compare-and-set update whose ``WHERE status IN (...)``
clause comes from ``sources_for``. A zero-row update means another
writer moved the record first.

Self-rating:

    DRAFT          -> SUBMITTED        submit
    NEEDS_REVISION -> SUBMITTED        submit
    SUBMITTED      -> APPROVED         approve
    SUBMITTED      -> REJECTED         reject
    SUBMITTED      -> NEEDS_REVISION   request_revision

Rating period:

    DRAFT  -> ACTIVE | CANCELLED
    ACTIVE -> COMPLETED | CANCELLED
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Tuple

from merit.database.models.enums import RatingPeriodStatus, SelfRatingStatus
from merit.modules.shared.exceptions import InvalidStateTransitionError

SELF_RATING_TRANSITIONS: Dict[SelfRatingStatus, FrozenSet[SelfRatingStatus]] = {
    SelfRatingStatus.DRAFT: frozenset({SelfRatingStatus.SUBMITTED}),
    SelfRatingStatus.NEEDS_REVISION: frozenset({SelfRatingStatus.SUBMITTED}),
    SelfRatingStatus.SUBMITTED: frozenset(
        {
            SelfRatingStatus.APPROVED,
            SelfRatingStatus.REJECTED,
            SelfRatingStatus.NEEDS_REVISION,
        }
    ),
    SelfRatingStatus.APPROVED: frozenset(),
    SelfRatingStatus.REJECTED: frozenset(),
}

PERIOD_TRANSITIONS: Dict[RatingPeriodStatus, FrozenSet[RatingPeriodStatus]] = {
    RatingPeriodStatus.DRAFT: frozenset({RatingPeriodStatus.ACTIVE, RatingPeriodStatus.CANCELLED}),
    RatingPeriodStatus.ACTIVE: frozenset(
        {RatingPeriodStatus.COMPLETED, RatingPeriodStatus.CANCELLED}
    ),
    RatingPeriodStatus.COMPLETED: frozenset(),
    RatingPeriodStatus.CANCELLED: frozenset(),
}

# Statuses in which the owner may still edit responses
EDITABLE_RATING_STATUSES: FrozenSet[SelfRatingStatus] = frozenset(
    {SelfRatingStatus.DRAFT, SelfRatingStatus.NEEDS_REVISION}
)


def can_transition(current: SelfRatingStatus, target: SelfRatingStatus) -> bool:
    return target in SELF_RATING_TRANSITIONS.get(current, frozenset())


def can_transition_period(current: RatingPeriodStatus, target: RatingPeriodStatus) -> bool:
    return target in PERIOD_TRANSITIONS.get(current, frozenset())


def sources_for(target: SelfRatingStatus) -> Tuple[SelfRatingStatus, ...]:
    """Statuses from which ``target`` is reachable, in declaration order."""
    return tuple(
        source for source, targets in SELF_RATING_TRANSITIONS.items() if target in targets
    )


def period_sources_for(target: RatingPeriodStatus) -> Tuple[RatingPeriodStatus, ...]:
    return tuple(source for source, targets in PERIOD_TRANSITIONS.items() if target in targets)


def ensure_transition(current: Optional[SelfRatingStatus], target: SelfRatingStatus) -> None:
    if current is None or not can_transition(current, target):
        raise InvalidStateTransitionError(
            current.value if current is not None else None, target.value
        )


def ensure_period_transition(
    current: Optional[RatingPeriodStatus], target: RatingPeriodStatus
) -> None:
    if current is None or not can_transition_period(current, target):
        raise InvalidStateTransitionError(
            current.value if current is not None else None,
            target.value,
            resource_type="RatingPeriod",
        )
