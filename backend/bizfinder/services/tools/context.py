"""
Per-call dependencies handed to tool handlers.
"""
from dataclasses import dataclass
from typing import Optional

from bizfinder.services.cache.result_cache import ResultCache
from bizfinder.services.store.base import RecordStore


@dataclass(frozen=True)
class ToolContext:
    store: RecordStore
    cache: Optional[ResultCache] = None
