"""
FastAPI dependencies building the resource services.

``main.create_app`` stores the settings, the resolved database path and
the tagged cache on ``app.state``.  Services are cheap to construct, so
a new instance is built per request around the shared cache.
"""

from fastapi import Request

from provider_catalog_api.app.services.provider_service import ProviderService
from provider_catalog_api.app.services.service_service import ServiceService


def get_provider_service(request: Request) -> ProviderService:
    state = request.app.state
    return ProviderService(
        cache=state.cache,
        database_path=state.database_path,
        cache_ttl=state.settings.cache_ttl,
    )


def get_service_service(request: Request) -> ServiceService:
    state = request.app.state
    return ServiceService(
        cache=state.cache,
        database_path=state.database_path,
        cache_ttl=state.settings.cache_ttl,
    )
