"""
Shared service infrastructure: base classes and the domain exception
hierarchy used by every module.
"""

from merit.modules.shared.base_repository import BaseRepository
from merit.modules.shared.base_service import BaseService
from merit.modules.shared.exceptions import (
    ErrorSeverity,
    IncompleteSubmissionError,
    InvalidStateTransitionError,
    MeritDomainException,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "ErrorSeverity",
    "MeritDomainException",
    "ValidationError",
    "IncompleteSubmissionError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "PermissionDeniedError",
]
