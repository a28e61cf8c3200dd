"""
Base domain helpers for the Merit engine.

Purpose
-------
Shared building blocks for the immutable records services hand back to
callers: timestamp normalization and ISO formatting.

Non-Responsibilities
--------------------
- Persistence (handled by services via SQLAlchemy models)
- Database schema (handled by merit.database.models)
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    normalized = ensure_utc(value)
    return normalized.isoformat() if normalized is not None else None


def iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
