"""
Unit tests for the self-rating and rating-period transition tables.
"""

import pytest

from merit.database.models.enums import RatingPeriodStatus, SelfRatingStatus
from merit.modules.rating.state_machine import (
    EDITABLE_RATING_STATUSES,
    can_transition,
    can_transition_period,
    ensure_period_transition,
    ensure_transition,
    period_sources_for,
    sources_for,
)
from merit.modules.shared.exceptions import InvalidStateTransitionError

S = SelfRatingStatus
P = RatingPeriodStatus


@pytest.mark.unit
class TestSelfRatingTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (S.DRAFT, S.SUBMITTED),
            (S.NEEDS_REVISION, S.SUBMITTED),
            (S.SUBMITTED, S.APPROVED),
            (S.SUBMITTED, S.REJECTED),
            (S.SUBMITTED, S.NEEDS_REVISION),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        ensure_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (S.DRAFT, S.APPROVED),
            (S.DRAFT, S.REJECTED),
            (S.APPROVED, S.REJECTED),
            (S.APPROVED, S.SUBMITTED),
            (S.REJECTED, S.SUBMITTED),
            (S.NEEDS_REVISION, S.APPROVED),
            (S.SUBMITTED, S.SUBMITTED),
        ],
    )
    def test_refused(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            ensure_transition(current, target)
        assert exc_info.value.current == current.value
        assert exc_info.value.attempted == target.value

    def test_terminal_states_have_no_exits(self):
        for terminal in (S.APPROVED, S.REJECTED):
            assert not any(can_transition(terminal, target) for target in S)

    def test_sources(self):
        assert set(sources_for(S.SUBMITTED)) == {S.DRAFT, S.NEEDS_REVISION}
        assert sources_for(S.APPROVED) == (S.SUBMITTED,)
        assert sources_for(S.DRAFT) == ()

    def test_editable_statuses(self):
        assert EDITABLE_RATING_STATUSES == frozenset({S.DRAFT, S.NEEDS_REVISION})

    def test_missing_record_reports_none(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            ensure_transition(None, S.SUBMITTED)
        assert exc_info.value.current is None


@pytest.mark.unit
class TestPeriodTransitions:
    def test_lifecycle(self):
        assert can_transition_period(P.DRAFT, P.ACTIVE)
        assert can_transition_period(P.DRAFT, P.CANCELLED)
        assert can_transition_period(P.ACTIVE, P.COMPLETED)
        assert can_transition_period(P.ACTIVE, P.CANCELLED)
        assert not can_transition_period(P.DRAFT, P.COMPLETED)
        assert not can_transition_period(P.COMPLETED, P.ACTIVE)
        assert not can_transition_period(P.CANCELLED, P.ACTIVE)

    def test_period_error_names_resource(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            ensure_period_transition(P.COMPLETED, P.ACTIVE)
        assert exc_info.value.resource_type == "RatingPeriod"

    def test_period_sources(self):
        assert period_sources_for(P.ACTIVE) == (P.DRAFT,)
        assert set(period_sources_for(P.CANCELLED)) == {P.DRAFT, P.ACTIVE}
