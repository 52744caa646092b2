"""
Service layer for the services offered by providers.

``ServiceService`` mirrors ``ProviderService`` for the ``services``
table.  The provider read view embeds each provider's services, so
every service write invalidates both ``services_tag`` and
``providers_tag``.  A request that fails (validation, unknown provider,
unknown service) invalidates nothing.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from pydantic import TypeAdapter

from provider_catalog_api.app.core.cache import (
    PROVIDERS_TAG,
    SERVICES_LIST_KEY,
    SERVICES_TAG,
    TaggedCache,
    invalidate_after_write,
)
from provider_catalog_api.app.core.db import get_connection
from provider_catalog_api.app.core.exceptions import ResourceNotFoundException, ValidationException
from provider_catalog_api.app.core.validation import (
    SERVICE_RULES,
    SERVICE_UPDATE_RULES,
    normalize_price,
    validate,
)
from provider_catalog_api.app.schemas.service import (
    ServiceProviderSummary,
    ServiceRead,
    ServiceRequest,
    ServiceUpdateRequest,
)


logger = logging.getLogger(__name__)

_service_list_adapter = TypeAdapter(List[ServiceRead])

_SELECT_SERVICES = """
    SELECT s.id, s.name, s.description, s.price, s.created_at, s.updated_at,
           p.id AS provider_id, p.name AS provider_name, p.email AS provider_email,
           p.phone AS provider_phone, p.address AS provider_address
    FROM services s JOIN providers p ON p.id = s.provider_id
"""


class ServiceService:
    """Service class for managing the services offered by providers."""

    cache_key = SERVICES_LIST_KEY
    list_tags = frozenset({SERVICES_TAG})
    # Provider views embed service data.
    write_tags = frozenset({SERVICES_TAG, PROVIDERS_TAG})

    def __init__(
        self,
        cache: TaggedCache,
        database_path: Optional[str] = None,
        cache_ttl: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.database_path = database_path
        self.cache_ttl = cache_ttl

    async def list_services(self) -> bytes:
        """Return the JSON array of all services, served from the cache when possible."""
        return self.cache.get(
            self.cache_key,
            self._build_snapshot,
            tags=self.list_tags,
            ttl=self.cache_ttl,
        )

    async def create_service(self, data: ServiceRequest) -> ServiceRead:
        """Validate and insert a new service for an existing provider.

        Raises ``ResourceNotFoundException`` if ``providerId`` does not
        reference a provider.
        """
        violations = validate(data.model_dump(by_alias=True), SERVICE_RULES)
        if violations:
            logger.error("Service create validation failed: %s", violations)
            raise ValidationException(violations)
        price = f"{normalize_price(data.price):.2f}"

        conn = get_connection(self.database_path)
        try:
            cursor = conn.cursor()
            provider = cursor.execute(
                "SELECT id FROM providers WHERE id = ?", (data.provider_id,)
            ).fetchone()
            if provider is None:
                logger.error("Service create references unknown provider %s", data.provider_id)
                raise ResourceNotFoundException("Provider", data.provider_id)
            cursor.execute(
                """
                INSERT INTO services (name, description, price, provider_id)
                VALUES (?, ?, ?, ?)
                """,
                (data.name, data.description, price, data.provider_id),
            )
            service_id = cursor.lastrowid
            conn.commit()
            logger.info("Created service %s for provider %s", service_id, data.provider_id)
            service = self._fetch_service(cursor, service_id)
        finally:
            conn.close()

        invalidate_after_write(self.cache, self.write_tags, "service create")
        return service

    async def update_service(self, service_id: int, data: ServiceUpdateRequest) -> ServiceRead:
        """Replace name, description and price of an existing service.

        Raises ``ResourceNotFoundException`` if the service does not
        exist.
        """
        conn = get_connection(self.database_path)
        try:
            cursor = conn.cursor()
            exists = cursor.execute(
                "SELECT id FROM services WHERE id = ?", (service_id,)
            ).fetchone()
            if exists is None:
                raise ResourceNotFoundException("Service", service_id)

            violations = validate(data.model_dump(), SERVICE_UPDATE_RULES)
            if violations:
                logger.error("Service %s update validation failed: %s", service_id, violations)
                raise ValidationException(violations)
            cursor.execute(
                """
                UPDATE services
                SET name = ?, description = ?, price = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (data.name, data.description, f"{normalize_price(data.price):.2f}", service_id),
            )
            conn.commit()
            logger.info("Updated service %s", service_id)
            service = self._fetch_service(cursor, service_id)
        finally:
            conn.close()

        invalidate_after_write(self.cache, self.write_tags, "service update")
        return service

    async def delete_service(self, service_id: int) -> None:
        """Delete a service by ID.

        Raises ``ResourceNotFoundException`` if the service does not
        exist.
        """
        conn = get_connection(self.database_path)
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM services WHERE id = ?", (service_id,))
            affected = cursor.rowcount
            conn.commit()
        finally:
            conn.close()
        if not affected:
            raise ResourceNotFoundException("Service", service_id)
        logger.info("Deleted service %s", service_id)

        invalidate_after_write(self.cache, self.write_tags, "service delete")

    def _build_snapshot(self) -> bytes:
        conn = get_connection(self.database_path)
        try:
            rows = conn.execute(_SELECT_SERVICES + " ORDER BY s.id").fetchall()
        finally:
            conn.close()
        return _service_list_adapter.dump_json([self._row_to_service_read(row) for row in rows])

    def _fetch_service(self, cursor: sqlite3.Cursor, service_id: int) -> ServiceRead:
        row = cursor.execute(_SELECT_SERVICES + " WHERE s.id = ?", (service_id,)).fetchone()
        return self._row_to_service_read(row)

    @staticmethod
    def _row_to_service_read(row: sqlite3.Row) -> ServiceRead:
        return ServiceRead(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            price=row["price"],
            provider=ServiceProviderSummary(
                id=row["provider_id"],
                name=row["provider_name"],
                email=row["provider_email"],
                phone=row["provider_phone"],
                address=row["provider_address"],
            ),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
