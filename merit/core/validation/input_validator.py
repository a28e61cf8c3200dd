"""
Input Validation Layer for the Merit engine.

Purpose
-------
Single source of truth for low-level input rules shared by all services:
type coercion, bounds, string lengths, identifiers, enum choices, paging
and dates. Business preconditions (period status, ownership) stay in the
services.

Observability
-------------
Every failure is logged at debug level with ``field_name``, ``raw_value``
and ``reason`` before ``ValidationError`` is raised.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, List, NoReturn, Optional, Sequence, Tuple, Type, TypeVar

from merit.core.logging.logger import get_logger
from merit.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

E = TypeVar("E", bound=Enum)

MAX_ID_LENGTH = 64


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless validators. Each returns the normalized value or raises
    ValidationError; none of them fail silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        allow_zero: bool = True,
    ) -> int:
        """
        Validate and convert ``value`` to int with optional bounds.

        Booleans and non-integral floats are rejected rather than truncated.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")

        if isinstance(value, float) and not value.is_integer():
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if not allow_zero and int_value == 0:
            _raise_validation_error(field_name, int_value, "Cannot be zero")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name, int_value, f"Must be at least {min_value}, got {int_value}"
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name, int_value, f"Cannot exceed {max_value}, got {int_value}"
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value, field_name, min_value=1, max_value=max_value, allow_zero=False
        )

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value, field_name, min_value=0, max_value=max_value
        )

    @staticmethod
    def validate_pagination(
        limit: Any,
        offset: Any,
        max_limit: int,
    ) -> Tuple[int, int]:
        """Return ``(limit, offset)`` with ``1 <= limit <= max_limit`` and ``offset >= 0``."""
        return (
            InputValidator.validate_positive_integer(limit, "limit", max_value=max_limit),
            InputValidator.validate_non_negative_integer(offset, "offset"),
        )

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> str:
        """Strip and length-check a string. ``None`` is rejected."""
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be text")

        str_value = value.strip()

        if min_length is not None and len(str_value) < min_length:
            if min_length == 1:
                _raise_validation_error(field_name, str_value, "Cannot be empty")
            _raise_validation_error(
                field_name, str_value, f"Must be at least {min_length} characters"
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name, str_value, f"Cannot exceed {max_length} characters"
            )

        return str_value

    @staticmethod
    def validate_optional_string(
        value: Any,
        field_name: str,
        max_length: Optional[int] = None,
    ) -> Optional[str]:
        """Like validate_string, but ``None`` and blank input become ``None``."""
        if value is None:
            return None
        str_value = InputValidator.validate_string(value, field_name, max_length=max_length)
        return str_value or None

    @staticmethod
    def validate_identifier(value: Any, field_name: str) -> str:
        """Opaque string identifier: non-empty, no surrounding whitespace kept."""
        return InputValidator.validate_string(
            value, field_name, min_length=1, max_length=MAX_ID_LENGTH
        )

    @staticmethod
    def validate_id_list(
        values: Any,
        field_name: str,
        max_count: Optional[int] = None,
    ) -> List[str]:
        """Validate a list of opaque identifiers; duplicates are rejected."""
        if not isinstance(values, (list, tuple, set, frozenset)):
            _raise_validation_error(field_name, values, "Must be a list")

        if max_count is not None and len(values) > max_count:
            _raise_validation_error(
                field_name, values, f"Cannot provide more than {max_count} items"
            )

        validated: List[str] = []
        for idx, raw_value in enumerate(values):
            try:
                validated.append(
                    InputValidator.validate_identifier(raw_value, f"{field_name}[{idx}]")
                )
            except ValidationError as exc:
                _raise_validation_error(
                    field_name, raw_value, f"Item {idx}: {exc.validation_message}"
                )

        if len(validated) != len(set(validated)):
            _raise_validation_error(field_name, validated, "List contains duplicate IDs")

        return validated

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_enum(value: Any, enum_cls: Type[E], field_name: str) -> E:
        """
        Accept an ``enum_cls`` member or its value (case-insensitive for
        string values).
        """
        if isinstance(value, enum_cls):
            return value

        if isinstance(value, str):
            normalized = value.strip().upper()
            for member in enum_cls:
                if str(member.value).upper() == normalized:
                    return member

        choices = ", ".join(str(member.value) for member in enum_cls)
        _raise_validation_error(
            field_name, value, f"Invalid choice '{value}'. Must be one of: {choices}"
        )

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        str_value = str(value).lower().strip()
        if str_value not in {choice.lower() for choice in valid_choices}:
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {', '.join(sorted(valid_choices))}",
            )
        return str_value

    # =========================================================================
    # DATE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_date(value: Any, field_name: str) -> date:
        """Accept a ``date``, a ``datetime`` (date part) or an ISO ``YYYY-MM-DD`` string."""
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip()[:10])
            except ValueError:
                pass
        _raise_validation_error(field_name, value, "Must be a date (YYYY-MM-DD)")

    @staticmethod
    def validate_timestamp(value: Any, field_name: str) -> datetime:
        """Accept an aware/naive ``datetime`` or ISO-8601 string; result is UTC-aware."""
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                _raise_validation_error(field_name, value, "Must be an ISO-8601 timestamp")
        if not isinstance(value, datetime):
            _raise_validation_error(field_name, value, "Must be a timestamp")
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
