"""
Review service.

- create_review: validates input (all problems reported together), applies
  defaults, normalizes the email and rejects a second review of the same
  item by the same reviewer
- list_reviews: newest first, with total, average (2 decimals) and the
  distribution of ratings 5..1
- get_stats: the aggregate part of list_reviews
"""
import re
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from bizfinder.core.errors import ChatValidationError, DuplicateReviewError
from bizfinder.core.logging import get_logger
from bizfinder.models.review import RATING_VALUES, Review, ReviewCreate, ReviewList, ReviewStats

from .store import ReviewStore

logger = get_logger(__name__)

DEFAULT_REVIEWER_NAME = "Anonymous"
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def parse_rating(value: Any) -> Optional[int]:
    """Integer rating from an int, an integral float or a numeric string."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_review(data: ReviewCreate) -> List[str]:
    errors: List[str] = []

    if not data.item_id or not data.item_id.strip():
        errors.append("item_id is required")

    if not data.reviewer_email:
        errors.append("reviewer_email is required")
    elif not EMAIL_RE.match(data.reviewer_email.strip()):
        errors.append("reviewer_email is not a valid email address")

    if data.rating is None:
        errors.append("rating is required")
    else:
        rating = parse_rating(data.rating)
        if rating is None or not 1 <= rating <= 5:
            errors.append("rating must be a number between 1 and 5")

    if data.review_text is None:
        errors.append("review_text is required")
    elif not data.review_text.strip():
        errors.append("review_text must not be empty")

    return errors


def summarize(item_id: str, reviews: List[Review]) -> ReviewStats:
    total = len(reviews)
    average = sum(r.rating for r in reviews) / total if total else 0.0
    distribution = {rating: 0 for rating in RATING_VALUES}
    for review in reviews:
        distribution[review.rating] += 1
    return ReviewStats(
        item_id=item_id,
        total_reviews=total,
        average_rating=round(average, 2),
        rating_distribution=distribution,
    )


class ReviewService:
    def __init__(
        self,
        store: ReviewStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self._clock = clock

    async def create_review(self, data: ReviewCreate) -> Review:
        """
        Validate and store a review.

        Raises:
            ChatValidationError: invalid fields (details["errors"] lists them)
            DuplicateReviewError: this email already reviewed this item
        """
        errors = validate_review(data)
        if errors:
            raise ChatValidationError(
                "Review validation failed: " + ", ".join(errors),
                details={"errors": errors},
            )

        email = data.reviewer_email.strip().lower()
        item_id = data.item_id.strip()
        if await self.store.exists(item_id, email):
            raise DuplicateReviewError("This reviewer already reviewed this item")

        now = self._clock()
        review = Review(
            item_id=item_id,
            reviewer_name=(data.reviewer_name or "").strip() or DEFAULT_REVIEWER_NAME,
            reviewer_email=email,
            rating=parse_rating(data.rating),
            review_text=data.review_text.strip(),
            created_at=now,
            updated_at=now,
        )
        stored = await self.store.insert(review)
        if stored is None:
            raise DuplicateReviewError("This reviewer already reviewed this item")

        logger.info("review_created", review_id=stored.id, item_id=item_id, rating=stored.rating)
        return stored

    async def list_reviews(self, item_id: str) -> ReviewList:
        if not item_id or not item_id.strip():
            raise ChatValidationError("item_id is required")
        reviews = await self.store.list_by_item(item_id)
        stats = summarize(item_id, reviews)
        logger.debug("reviews_listed", item_id=item_id, total=stats.total_reviews)
        return ReviewList(**stats.model_dump(), reviews=reviews)

    async def get_stats(self, item_id: str) -> ReviewStats:
        if not item_id or not item_id.strip():
            raise ChatValidationError("item_id is required")
        return summarize(item_id, await self.store.list_by_item(item_id))

    async def has_reviewed(self, item_id: str, reviewer_email: str) -> bool:
        return await self.store.exists(item_id, reviewer_email.strip().lower())
