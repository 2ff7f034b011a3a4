"""
Review models for the reviews endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

RATING_VALUES = (5, 4, 3, 2, 1)


class ReviewCreate(BaseModel):
    """Incoming review. Loosely typed: the service reports every problem at once."""

    item_id: Optional[str] = None
    reviewer_name: Optional[str] = None
    reviewer_email: Optional[str] = None
    rating: Optional[Any] = None
    review_text: Optional[str] = None


class Review(BaseModel):
    id: Optional[str] = None
    item_id: str
    reviewer_name: str
    reviewer_email: str
    rating: int = Field(..., ge=1, le=5)
    review_text: str
    created_at: datetime
    updated_at: datetime


class ReviewStats(BaseModel):
    item_id: str
    total_reviews: int = 0
    average_rating: float = 0.0
    rating_distribution: Dict[int, int] = Field(
        default_factory=lambda: {rating: 0 for rating in RATING_VALUES}
    )


class ReviewList(ReviewStats):
    reviews: List[Review] = Field(default_factory=list)
