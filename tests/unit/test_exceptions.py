"""
Unit tests for the domain exception hierarchy.
"""

import pytest

from merit.modules.shared.exceptions import (
    ErrorSeverity,
    IncompleteSubmissionError,
    InvalidStateTransitionError,
    MeritDomainException,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    get_error_severity,
    should_alert,
)


@pytest.mark.unit
class TestDomainExceptions:
    def test_validation_error_fields(self):
        exc = ValidationError("delta", "Cannot be zero")

        assert exc.field == "delta"
        assert exc.error_code == "VALIDATION_DELTA"
        assert exc.severity is ErrorSeverity.INFO
        assert "Cannot be zero" in str(exc)

    def test_incomplete_submission_lists_missing(self):
        exc = IncompleteSubmissionError([("c-1", "Attended meetings"), ("c-2", "Tasks")])

        assert exc.missing_ids == ["c-1", "c-2"]
        assert exc.to_dict()["details"]["missing_criteria"][0] == {
            "id": "c-1",
            "name": "Attended meetings",
        }

    def test_transition_error(self):
        exc = InvalidStateTransitionError("APPROVED", "REJECTED")

        assert exc.current == "APPROVED"
        assert exc.resource_type == "SelfRating"
        assert exc.error_code == "INVALID_STATE_TRANSITION"

    def test_not_found_code(self):
        assert NotFoundError("RatingPeriod", "p-1").error_code == "RATINGPERIOD_NOT_FOUND"
        missing = NotFoundError("Member")
        assert missing.message == "Member not found"
        assert str(missing).startswith("[MEMBER_NOT_FOUND] Member not found")

    def test_permission_denied_is_warning(self):
        exc = PermissionDeniedError("approve self-rating", "reviewer role required")
        assert exc.severity is ErrorSeverity.WARNING
        assert not should_alert(exc)

    def test_severity_helpers(self):
        assert get_error_severity(RuntimeError("boom")) is ErrorSeverity.ERROR
        assert should_alert(RuntimeError("boom"))
        assert should_alert(MeritDomainException("ledger unavailable"))
