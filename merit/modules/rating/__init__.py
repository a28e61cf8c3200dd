from merit.modules.rating.period_service import RatingPeriodService, normalize_criteria
from merit.modules.rating.stats_service import (
    MemberRatingStats,
    PeriodRatingStats,
    RatingOverview,
    RatingQueryService,
)
from merit.modules.rating.workflow_service import RatingWorkflowService

__all__ = [
    "RatingPeriodService",
    "RatingWorkflowService",
    "RatingQueryService",
    "MemberRatingStats",
    "PeriodRatingStats",
    "RatingOverview",
    "normalize_criteria",
]
