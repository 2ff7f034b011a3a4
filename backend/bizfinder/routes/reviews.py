"""
Review endpoints.

POST /reviews
GET /reviews/{item_id}
GET /reviews/{item_id}/stats
"""
from fastapi import APIRouter, Depends

from bizfinder.core.logging import get_logger
from bizfinder.deps import get_review_service
from bizfinder.models.review import Review, ReviewCreate, ReviewList, ReviewStats
from bizfinder.services.reviews import ReviewService

logger = get_logger(__name__)
router = APIRouter()


@router.post("", status_code=201)
async def create_review(
    body: ReviewCreate,
    service: ReviewService = Depends(get_review_service),
):
    """
    Create a review.

    Errors:
        400 ValidationError: invalid fields, all listed in error.details.errors
        409 DuplicateReview: the email already reviewed this item
    """
    review: Review = await service.create_review(body)
    return {
        "success": True,
        "message": "Review created",
        "review": review.model_dump(mode="json", exclude={"reviewer_email", "updated_at"}),
    }


@router.get("/{item_id}", response_model=ReviewList)
async def list_reviews(item_id: str, service: ReviewService = Depends(get_review_service)):
    """Reviews of one item, newest first, with aggregate stats."""
    return await service.list_reviews(item_id)


@router.get("/{item_id}/stats", response_model=ReviewStats)
async def review_stats(item_id: str, service: ReviewService = Depends(get_review_service)):
    return await service.get_stats(item_id)
