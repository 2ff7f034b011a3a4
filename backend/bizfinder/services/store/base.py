"""
Record store interface.

Query primitives the tools compose: exact match (id, slug), case-insensitive
substring (text terms, tag, city, address), flag filters and tag-count
aggregation. Implementations must be safe for concurrent use by many
conversations.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from bizfinder.models.business import BusinessRecord

TEXT_FIELDS = ("name", "description", "tags", "address")
DEFAULT_TEXT_FIELDS = ("name", "description", "tags")


class RecordSort(str, Enum):
    STORE_ORDER = "store_order"
    VIEWS_DESC = "views_desc"


class RecordFilter(BaseModel):
    """
    Conjunctive filter over business records.

    text_terms match when ANY term appears (case-insensitive substring) in ANY
    of text_fields. city matches the city or the address field.
    """

    id: Optional[str] = None
    slug: Optional[str] = None
    active_only: bool = True
    verified: Optional[bool] = None
    featured: Optional[bool] = None
    text_terms: List[str] = Field(default_factory=list)
    text_fields: Tuple[str, ...] = DEFAULT_TEXT_FIELDS
    tag_contains: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None


class RecordStore(ABC):
    """Read-only access to business records."""

    name = "store"

    async def connect(self) -> None:
        """Acquire resources (pools). Called once at application startup."""

    async def close(self) -> None:
        """Release resources. Called once at application shutdown."""

    async def ping(self) -> bool:
        return True

    @abstractmethod
    async def find_one(self, record_filter: RecordFilter) -> Optional[BusinessRecord]:
        ...

    @abstractmethod
    async def find_many(
        self,
        record_filter: RecordFilter,
        sort: RecordSort = RecordSort.STORE_ORDER,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[BusinessRecord]:
        ...

    @abstractmethod
    async def aggregate_tag_counts(
        self,
        record_filter: RecordFilter,
        limit: int,
    ) -> List[Tuple[str, int]]:
        """Tag frequencies across matching records, count desc then tag asc."""
