"""Unit tests for ServiceService."""

from __future__ import annotations

import json

import pytest

from provider_catalog_api.app.core.db import get_connection
from provider_catalog_api.app.core.exceptions import ResourceNotFoundException, ValidationException
from provider_catalog_api.app.schemas.provider import ProviderRequest
from provider_catalog_api.app.schemas.service import ServiceRequest, ServiceUpdateRequest

BOTH_TAGS = frozenset({"providers_tag", "services_tag"})


@pytest.fixture
def provider_id(provider_payload, database_path) -> int:
    conn = get_connection(database_path)
    try:
        cursor = conn.execute(
            "INSERT INTO providers (name, email, phone, address) VALUES (?, ?, ?, ?)",
            tuple(provider_payload[field] for field in ("name", "email", "phone", "address")),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def _count_services(database_path: str) -> int:
    conn = get_connection(database_path)
    try:
        return conn.execute("SELECT COUNT(*) FROM services").fetchone()[0]
    finally:
        conn.close()


class TestCreateService:
    @pytest.mark.asyncio
    async def test_create_returns_service_with_provider(
        self, service_service, service_payload, provider_id
    ) -> None:
        created = await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )
        assert created.name == "Pipe inspection"
        assert created.price == "49.90"
        assert created.provider.id == provider_id
        assert created.provider.email == "jane@x.com"

    @pytest.mark.asyncio
    async def test_create_invalidates_both_tags(
        self, service_service, service_payload, provider_id, cache
    ) -> None:
        await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )
        assert cache.invalidations == [BOTH_TAGS]

    @pytest.mark.parametrize("price", ["10.5", 10.5, "10.50"])
    @pytest.mark.asyncio
    async def test_price_is_stored_with_two_decimals(
        self, service_service, service_payload, provider_id, price
    ) -> None:
        service_payload["price"] = price
        created = await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )
        assert created.price == "10.50"

    @pytest.mark.asyncio
    async def test_unknown_provider_is_not_found(
        self, service_service, service_payload, database_path, cache
    ) -> None:
        with pytest.raises(ResourceNotFoundException) as exc_info:
            await service_service.create_service(ServiceRequest(**service_payload, providerId=999))

        assert exc_info.value.message == "Provider with id 999 not found"
        assert _count_services(database_path) == 0
        assert cache.invalidations == []

    @pytest.mark.asyncio
    async def test_invalid_price_is_rejected(
        self, service_service, service_payload, provider_id, cache
    ) -> None:
        service_payload["price"] = "10.555"
        with pytest.raises(ValidationException) as exc_info:
            await service_service.create_service(
                ServiceRequest(**service_payload, providerId=provider_id)
            )
        assert [e["property"] for e in exc_info.value.errors] == ["price"]
        assert cache.invalidations == []


class TestListServices:
    @pytest.mark.asyncio
    async def test_list_is_cached_until_a_write(
        self, service_service, service_payload, provider_id, cache
    ) -> None:
        assert json.loads(await service_service.list_services()) == []
        assert json.loads(await service_service.list_services()) == []
        assert cache.productions["services_list"] == 1

        await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )
        services = json.loads(await service_service.list_services())
        assert cache.productions["services_list"] == 2
        assert [s["name"] for s in services] == ["Pipe inspection"]
        assert services[0]["provider"]["id"] == provider_id

    @pytest.mark.asyncio
    async def test_service_write_refreshes_provider_list(
        self, provider_service, service_service, service_payload, provider_id
    ) -> None:
        before = json.loads(await provider_service.list_providers())
        assert before[0]["services"] == []

        await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )

        after = json.loads(await provider_service.list_providers())
        assert [s["name"] for s in after[0]["services"]] == ["Pipe inspection"]


class TestUpdateService:
    @pytest.mark.asyncio
    async def test_update_replaces_fields(
        self, service_service, service_payload, provider_id, cache
    ) -> None:
        created = await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )
        updated = await service_service.update_service(
            created.id,
            ServiceUpdateRequest(name="Drain cleaning", description="Clears drains", price="75"),
        )
        assert (updated.name, updated.description, updated.price) == (
            "Drain cleaning",
            "Clears drains",
            "75.00",
        )
        assert cache.invalidations == [BOTH_TAGS, BOTH_TAGS]

    @pytest.mark.asyncio
    async def test_update_cannot_move_service_to_another_provider(
        self, service_service, provider_service, service_payload, provider_id, provider_payload
    ) -> None:
        other = await provider_service.create_provider(
            ProviderRequest(**{**provider_payload, "email": "john@x.com"})
        )
        created = await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )
        updated = await service_service.update_service(
            created.id,
            ServiceUpdateRequest.model_validate({**service_payload, "providerId": other.id}),
        )
        assert updated.provider.id == provider_id

    @pytest.mark.asyncio
    async def test_unknown_service(self, service_service, service_payload, cache) -> None:
        with pytest.raises(ResourceNotFoundException) as exc_info:
            await service_service.update_service(5, ServiceUpdateRequest(**service_payload))
        assert exc_info.value.message == "Service with id 5 not found"
        assert cache.invalidations == []


class TestDeleteService:
    @pytest.mark.asyncio
    async def test_delete_removes_row_and_invalidates(
        self, service_service, service_payload, provider_id, database_path, cache
    ) -> None:
        created = await service_service.create_service(
            ServiceRequest(**service_payload, providerId=provider_id)
        )
        await service_service.delete_service(created.id)
        assert _count_services(database_path) == 0
        assert cache.invalidations[-1] == BOTH_TAGS

    @pytest.mark.asyncio
    async def test_unknown_service(self, service_service, cache) -> None:
        with pytest.raises(ResourceNotFoundException):
            await service_service.delete_service(123)
        assert cache.invalidations == []
