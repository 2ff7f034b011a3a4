"""Pydantic models for business records and reviews."""

from .business import ACTIVE_STATUS, BusinessRecord
from .review import Review, ReviewCreate, ReviewList, ReviewStats

__all__ = [
    "ACTIVE_STATUS",
    "BusinessRecord",
    "Review",
    "ReviewCreate",
    "ReviewList",
    "ReviewStats",
]
