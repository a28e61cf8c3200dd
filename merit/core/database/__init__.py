"""
Database subsystem for the Merit engine.

Provides the async SQLAlchemy engine, session management and the ORM base
classes used by every model.
"""

from merit.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UuidIdMixin,
    new_uuid,
    utc_now,
)
from merit.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "UuidIdMixin",
    "TimestampMixin",
    "utc_now",
    "new_uuid",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
