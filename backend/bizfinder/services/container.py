"""
Service wiring.

Everything a request needs is built once at startup from Settings and held
on app.state; no module-level connections. Tests build a container from
in-memory parts and stub clients.
"""
from dataclasses import dataclass
from typing import Optional

from bizfinder.core.config import Settings
from bizfinder.core.logging import get_logger
from bizfinder.services.ai.llm_client import LLMClient
from bizfinder.services.ai.orchestration import ChatOrchestrator
from bizfinder.services.cache import ResultCache, build_result_cache
from bizfinder.services.reviews import (
    InMemoryReviewStore,
    PostgresReviewStore,
    ReviewService,
    ReviewStore,
)
from bizfinder.services.store import PostgresRecordStore, RecordStore, build_record_store
from bizfinder.services.tools import ToolContext, ToolRegistry, build_default_registry

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    store: RecordStore
    cache: ResultCache
    registry: ToolRegistry
    llm: LLMClient
    orchestrator: ChatOrchestrator
    reviews: ReviewService

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: Optional[RecordStore] = None,
        cache: Optional[ResultCache] = None,
        llm: Optional[LLMClient] = None,
        review_store: Optional[ReviewStore] = None,
    ) -> "ServiceContainer":
        store = store or build_record_store(settings)
        cache = cache or build_result_cache(settings)
        llm = llm or LLMClient.from_settings(settings)
        registry = build_default_registry()

        if review_store is None:
            if isinstance(store, PostgresRecordStore):
                review_store = PostgresReviewStore(store)
            else:
                review_store = InMemoryReviewStore()

        orchestrator = ChatOrchestrator(
            llm=llm,
            registry=registry,
            tool_context=ToolContext(store=store, cache=cache),
            max_iterations=settings.chat_max_iterations,
            search_fallback_threshold=settings.chat_search_fallback_threshold,
        )
        return cls(
            settings=settings,
            store=store,
            cache=cache,
            registry=registry,
            llm=llm,
            orchestrator=orchestrator,
            reviews=ReviewService(review_store),
        )

    async def start(self) -> None:
        await self.store.connect()
        await self.cache.start()
        logger.info(
            "services_started",
            store_backend=self.store.name,
            cache_backend=self.cache.backend,
            tools=len(self.registry),
            llm_configured=self.settings.llm_configured,
        )

    async def stop(self) -> None:
        await self.cache.stop()
        await self.store.close()
        logger.info("services_stopped")
