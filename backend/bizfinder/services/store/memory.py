"""
In-memory record store for development seeds and tests.
"""
from collections import Counter
from typing import Iterable, List, Optional, Tuple

from bizfinder.core.logging import get_logger
from bizfinder.models.business import BusinessRecord

from .base import RecordFilter, RecordSort, RecordStore

logger = get_logger(__name__)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle.casefold() in haystack.casefold()


def _field_contains(record: BusinessRecord, field: str, term: str) -> bool:
    if field == "tags":
        return any(_contains(tag, term) for tag in record.tags)
    return _contains(getattr(record, field, None), term)


def matches(record: BusinessRecord, record_filter: RecordFilter) -> bool:
    f = record_filter
    if f.active_only and not record.is_active:
        return False
    if f.id is not None and record.id != f.id:
        return False
    if f.slug is not None and record.slug != f.slug:
        return False
    if f.verified is not None and record.verified != f.verified:
        return False
    if f.featured is not None and record.featured != f.featured:
        return False
    if f.text_terms and not any(
        _field_contains(record, field, term)
        for term in f.text_terms
        for field in f.text_fields
    ):
        return False
    if f.tag_contains and not _field_contains(record, "tags", f.tag_contains):
        return False
    if f.city and not (_contains(record.city, f.city) or _contains(record.address, f.city)):
        return False
    if f.address and not _contains(record.address, f.address):
        return False
    return True


class InMemoryRecordStore(RecordStore):
    """Holds records in insertion order; the list order is the store order."""

    name = "memory"

    def __init__(self, records: Optional[Iterable[BusinessRecord]] = None):
        self._records: List[BusinessRecord] = list(records or [])

    def add(self, record: BusinessRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    async def connect(self) -> None:
        logger.info("store_connected", backend=self.name, records=len(self._records))

    async def find_one(self, record_filter: RecordFilter) -> Optional[BusinessRecord]:
        for record in self._records:
            if matches(record, record_filter):
                return record
        return None

    async def find_many(
        self,
        record_filter: RecordFilter,
        sort: RecordSort = RecordSort.STORE_ORDER,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[BusinessRecord]:
        found = [r for r in self._records if matches(r, record_filter)]
        if sort == RecordSort.VIEWS_DESC:
            found.sort(key=lambda r: r.views, reverse=True)
        end = None if limit is None else skip + limit
        return found[skip:end]

    async def aggregate_tag_counts(
        self,
        record_filter: RecordFilter,
        limit: int,
    ) -> List[Tuple[str, int]]:
        counts: Counter = Counter()
        for record in self._records:
            if matches(record, record_filter):
                counts.update(record.tags)
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return ordered[:limit]
