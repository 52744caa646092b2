"""Shared pytest fixtures for the Provider Catalog API test-suite."""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient

from provider_catalog_api.app.core.cache import MemoryTaggedCache
from provider_catalog_api.app.core.config import Settings
from provider_catalog_api.app.core.db import init_db
from provider_catalog_api.app.main import create_app
from provider_catalog_api.app.services.provider_service import ProviderService
from provider_catalog_api.app.services.service_service import ServiceService


class SpyCache(MemoryTaggedCache):
    """In-memory cache recording producer calls and invalidated tag sets."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.productions: Counter = Counter()
        self.invalidations: List[frozenset] = []

    def get(
        self,
        key: str,
        producer: Callable[[], bytes],
        tags: Iterable[str] = (),
        ttl: Optional[int] = None,
    ) -> bytes:
        def counting_producer() -> bytes:
            self.productions[key] += 1
            return producer()

        return super().get(key, counting_producer, tags=tags, ttl=ttl)

    def invalidate_tags(self, tags: Iterable[str]) -> None:
        tags = frozenset(tags)
        self.invalidations.append(tags)
        super().invalidate_tags(tags)


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def database_path(tmp_path) -> str:
    path = str(tmp_path / "catalog.db")
    init_db(path)
    return path


@pytest.fixture
def cache() -> SpyCache:
    return SpyCache(max_size=64, default_ttl=3600)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_settings(tmp_path, database_path: str) -> Settings:
    return Settings(
        database_url=database_path,
        cache_backend="memory",
        cache_url=str(tmp_path / "cache.db"),
        environment="prod",
        log_level="WARNING",
    )


@pytest.fixture
def client(app_settings: Settings, cache: SpyCache) -> Iterator[TestClient]:
    app = create_app(app_settings, cache=cache)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def provider_service(cache: SpyCache, database_path: str) -> ProviderService:
    return ProviderService(cache=cache, database_path=database_path)


@pytest.fixture
def service_service(cache: SpyCache, database_path: str) -> ServiceService:
    return ServiceService(cache=cache, database_path=database_path)


@pytest.fixture
def provider_payload() -> Dict[str, Any]:
    return {
        "name": "Jane Doe",
        "email": "jane@x.com",
        "phone": "+15551234567",
        "address": "123 Main St",
    }


@pytest.fixture
def service_payload() -> Dict[str, Any]:
    return {
        "name": "Pipe inspection",
        "description": "Full inspection of pipes and fittings",
        "price": "49.90",
    }
