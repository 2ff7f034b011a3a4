"""
Record store adapters.

The chat core reads business records only through the RecordStore interface.
"""
from .base import RecordFilter, RecordSort, RecordStore
from .memory import InMemoryRecordStore
from .postgres import PostgresRecordStore
from .samples import sample_businesses

__all__ = [
    "RecordFilter",
    "RecordSort",
    "RecordStore",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "build_record_store",
]


def build_record_store(settings) -> RecordStore:
    """Pick the store backend named by STORE_BACKEND."""
    if settings.store_backend == "memory":
        return InMemoryRecordStore(sample_businesses())
    return PostgresRecordStore(
        settings.database_url,
        query_timeout_seconds=settings.store_query_timeout_seconds,
        min_size=settings.store_pool_min_size,
        max_size=settings.store_pool_max_size,
    )
