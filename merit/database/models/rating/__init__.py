from .criterion import Criterion
from .rating_period import RatingPeriod
from .self_rating import SelfRating

__all__ = ["Criterion", "RatingPeriod", "SelfRating"]
