"""
Review persistence.
"""
from abc import ABC, abstractmethod
from itertools import count
from threading import Lock
from typing import Any, List, Optional

from bizfinder.core.logging import get_logger
from bizfinder.models.review import Review
from bizfinder.services.store.postgres import PostgresRecordStore

logger = get_logger(__name__)

REVIEW_COLUMNS = (
    "id", "item_id", "reviewer_name", "reviewer_email", "rating",
    "review_text", "created_at", "updated_at",
)


class ReviewStore(ABC):
    @abstractmethod
    async def insert(self, review: Review) -> Optional[Review]:
        """Store a review. Returns None when (item_id, reviewer_email) already exists."""

    @abstractmethod
    async def list_by_item(self, item_id: str) -> List[Review]:
        """Reviews of one item, newest first."""

    @abstractmethod
    async def exists(self, item_id: str, reviewer_email: str) -> bool:
        ...


class InMemoryReviewStore(ReviewStore):
    def __init__(self):
        self._reviews: List[Review] = []
        self._ids = count(1)
        self._lock = Lock()

    async def insert(self, review: Review) -> Optional[Review]:
        with self._lock:
            if any(
                r.item_id == review.item_id and r.reviewer_email == review.reviewer_email
                for r in self._reviews
            ):
                return None
            stored = review.model_copy(update={"id": str(next(self._ids))})
            self._reviews.append(stored)
        return stored

    async def list_by_item(self, item_id: str) -> List[Review]:
        with self._lock:
            found = [r for r in self._reviews if r.item_id == item_id]
        # Equal timestamps: most recently inserted first.
        return sorted(reversed(found), key=lambda r: r.created_at, reverse=True)

    async def exists(self, item_id: str, reviewer_email: str) -> bool:
        with self._lock:
            return any(
                r.item_id == item_id and r.reviewer_email == reviewer_email
                for r in self._reviews
            )


def _row_to_review(row: Any) -> Review:
    data = dict(row)
    data["id"] = str(data["id"])
    return Review.model_validate(data)


class PostgresReviewStore(ReviewStore):
    """Reviews table sharing the record store's asyncpg pool."""

    def __init__(self, database: PostgresRecordStore):
        self.database = database

    async def insert(self, review: Review) -> Optional[Review]:
        sql = (
            "INSERT INTO reviews (item_id, reviewer_name, reviewer_email, rating, "
            "review_text, created_at, updated_at) "
            "VALUES ($1, $2, $3, $4, $5, $6, $7) "
            "ON CONFLICT (item_id, reviewer_email) DO NOTHING "
            f"RETURNING {', '.join(REVIEW_COLUMNS)}"
        )
        rows = await self.database.fetch("insert_review", sql, [
            review.item_id,
            review.reviewer_name,
            review.reviewer_email,
            review.rating,
            review.review_text,
            review.created_at,
            review.updated_at,
        ])
        return _row_to_review(rows[0]) if rows else None

    async def list_by_item(self, item_id: str) -> List[Review]:
        sql = (
            f"SELECT {', '.join(REVIEW_COLUMNS)} FROM reviews "
            "WHERE item_id = $1 ORDER BY created_at DESC, id DESC"
        )
        rows = await self.database.fetch("list_reviews", sql, [item_id])
        return [_row_to_review(row) for row in rows]

    async def exists(self, item_id: str, reviewer_email: str) -> bool:
        rows = await self.database.fetch(
            "review_exists",
            "SELECT 1 FROM reviews WHERE item_id = $1 AND reviewer_email = $2 LIMIT 1",
            [item_id, reviewer_email],
        )
        return bool(rows)
