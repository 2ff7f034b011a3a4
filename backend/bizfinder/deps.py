"""
FastAPI dependencies resolving the services built at startup.
"""
from fastapi import Depends, Request

from bizfinder.core.config import Settings
from bizfinder.core.errors import BackendUnavailableError
from bizfinder.services.ai.orchestration import ChatOrchestrator
from bizfinder.services.cache import ResultCache
from bizfinder.services.container import ServiceContainer
from bizfinder.services.reviews import ReviewService
from bizfinder.services.store import RecordStore


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise BackendUnavailableError("Services not initialized", backend="app")
    return services


def get_app_settings(services: ServiceContainer = Depends(get_services)) -> Settings:
    return services.settings


def get_orchestrator(services: ServiceContainer = Depends(get_services)) -> ChatOrchestrator:
    return services.orchestrator


def get_record_store(services: ServiceContainer = Depends(get_services)) -> RecordStore:
    return services.store


def get_result_cache(services: ServiceContainer = Depends(get_services)) -> ResultCache:
    return services.cache


def get_review_service(services: ServiceContainer = Depends(get_services)) -> ReviewService:
    return services.reviews
