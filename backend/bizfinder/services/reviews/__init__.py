"""
Business reviews: creation with validation and per-item aggregates.
"""
from .service import DEFAULT_REVIEWER_NAME, ReviewService
from .store import InMemoryReviewStore, PostgresReviewStore, ReviewStore

__all__ = [
    "DEFAULT_REVIEWER_NAME",
    "InMemoryReviewStore",
    "PostgresReviewStore",
    "ReviewService",
    "ReviewStore",
]
