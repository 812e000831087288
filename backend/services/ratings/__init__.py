"""
Rating service - post-ride ratings and aggregate profile ratings.
"""

from .aggregator import (
    get_user_rating,
    rate_ride,
    recompute_user_rating,
)

__all__ = [
    "get_user_rating",
    "rate_ride",
    "recompute_user_rating",
]
