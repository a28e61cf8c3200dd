from .member import Member
from .point_transaction import PointTransaction

__all__ = ["Member", "PointTransaction"]
