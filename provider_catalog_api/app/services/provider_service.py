"""
Service layer for providers.

``ProviderService`` implements the provider CRUD operations on top of
the SQLite store.  Listing goes through the tagged cache: the
``providers_list`` snapshot is built from the database on a miss and
tagged ``providers_tag``.  Every successful write invalidates that tag
after the transaction commits.

Email addresses are unique.  The check happens before the write so the
client receives ``DUPLICATE_EMAIL``; the UNIQUE column constraint
covers two concurrent requests racing past the check.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from typing import Dict, List, Optional

from pydantic import TypeAdapter

from provider_catalog_api.app.core.cache import (
    PROVIDERS_LIST_KEY,
    PROVIDERS_TAG,
    SERVICES_TAG,
    TaggedCache,
    invalidate_after_write,
)
from provider_catalog_api.app.core.db import get_connection
from provider_catalog_api.app.core.exceptions import (
    BusinessLogicException,
    ResourceNotFoundException,
    ValidationException,
)
from provider_catalog_api.app.core.logging_config import mask_phone
from provider_catalog_api.app.core.validation import PROVIDER_RULES, validate
from provider_catalog_api.app.schemas.provider import (
    ProviderRead,
    ProviderRequest,
    ProviderServiceSummary,
)


logger = logging.getLogger(__name__)

_provider_list_adapter = TypeAdapter(List[ProviderRead])


class ProviderService:
    """Service class for managing providers."""

    cache_key = PROVIDERS_LIST_KEY
    cache_tags = frozenset({PROVIDERS_TAG})

    def __init__(
        self,
        cache: TaggedCache,
        database_path: Optional[str] = None,
        cache_ttl: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.database_path = database_path
        self.cache_ttl = cache_ttl

    async def list_providers(self) -> bytes:
        """Return the JSON array of all providers, served from the cache when possible."""
        logger.info("Fetching providers list (cache key %s)", self.cache_key)
        snapshot = self.cache.get(
            self.cache_key,
            self._build_snapshot,
            tags=self.cache_tags,
            ttl=self.cache_ttl,
        )
        logger.info("Retrieved providers list (%d bytes)", len(snapshot))
        return snapshot

    async def create_provider(self, data: ProviderRequest) -> ProviderRead:
        """Validate and insert a new provider, then return it."""
        logger.info("Creating provider '%s'", data.name)
        self._validate(data, action="create")

        conn = get_connection(self.database_path)
        try:
            cursor = conn.cursor()
            self._ensure_email_available(cursor, data.email)
            try:
                cursor.execute(
                    """
                    INSERT INTO providers (name, email, phone, address)
                    VALUES (?, ?, ?, ?)
                    """,
                    (data.name, data.email, data.phone, data.address),
                )
            except sqlite3.IntegrityError as exc:
                raise self._duplicate_email() from exc
            provider_id = cursor.lastrowid
            conn.commit()
            logger.info("Created provider %s (%s)", provider_id, data.email)
            provider = self._fetch_provider(cursor, provider_id)
        finally:
            conn.close()

        invalidate_after_write(self.cache, self.cache_tags, "provider create")
        return provider

    async def update_provider(self, provider_id: int, data: ProviderRequest) -> ProviderRead:
        """Replace the fields of an existing provider.

        Raises ``ResourceNotFoundException`` if the provider does not
        exist.  Keeping the provider's own email is not a conflict.
        """
        conn = get_connection(self.database_path)
        try:
            cursor = conn.cursor()
            current = cursor.execute(
                "SELECT id, name, email FROM providers WHERE id = ?",
                (provider_id,),
            ).fetchone()
            if current is None:
                logger.error("Provider update attempted for non-existent provider %s", provider_id)
                raise ResourceNotFoundException("Provider", provider_id)

            logger.info(
                "Updating provider %s (name '%s' -> '%s', email %s -> %s)",
                provider_id,
                current["name"],
                data.name,
                current["email"],
                data.email,
            )
            self._validate(data, action="update", provider_id=provider_id)
            self._ensure_email_available(cursor, data.email, exclude_id=provider_id)
            try:
                cursor.execute(
                    """
                    UPDATE providers
                    SET name = ?, email = ?, phone = ?, address = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (data.name, data.email, data.phone, data.address, provider_id),
                )
            except sqlite3.IntegrityError as exc:
                raise self._duplicate_email() from exc
            conn.commit()
            logger.info("Updated provider %s", provider_id)
            provider = self._fetch_provider(cursor, provider_id)
        finally:
            conn.close()

        invalidate_after_write(self.cache, self.cache_tags, "provider update")
        return provider

    async def delete_provider(self, provider_id: int) -> None:
        """Delete a provider together with its services.

        Raises ``ResourceNotFoundException`` if the provider does not
        exist.
        """
        conn = get_connection(self.database_path)
        try:
            cursor = conn.cursor()
            row = cursor.execute(
                """
                SELECT p.id, p.name, COUNT(s.id) AS service_count
                FROM providers p LEFT JOIN services s ON s.provider_id = p.id
                WHERE p.id = ?
                GROUP BY p.id
                """,
                (provider_id,),
            ).fetchone()
            if row is None:
                logger.error("Provider deletion attempted for non-existent provider %s", provider_id)
                raise ResourceNotFoundException("Provider", provider_id)
            # services rows go with it (ON DELETE CASCADE)
            cursor.execute("DELETE FROM providers WHERE id = ?", (provider_id,))
            conn.commit()
            logger.info(
                "Deleted provider %s ('%s') and %s service(s)",
                provider_id,
                row["name"],
                row["service_count"],
            )
        finally:
            conn.close()

        tags = set(self.cache_tags)
        if row["service_count"]:
            # the cascade removed services, so the services snapshot is stale too
            tags.add(SERVICES_TAG)
        invalidate_after_write(self.cache, tags, "provider delete")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_snapshot(self) -> bytes:
        logger.debug("Cache miss for %s, loading providers from database", self.cache_key)
        conn = get_connection(self.database_path)
        try:
            cursor = conn.cursor()
            provider_rows = cursor.execute("SELECT * FROM providers ORDER BY id").fetchall()
            service_rows = cursor.execute(
                "SELECT id, name, description, price, provider_id, created_at, updated_at "
                "FROM services ORDER BY id"
            ).fetchall()
        finally:
            conn.close()

        services_by_provider: Dict[int, List[ProviderServiceSummary]] = defaultdict(list)
        for row in service_rows:
            services_by_provider[row["provider_id"]].append(self._row_to_service_summary(row))
        providers = [
            self._row_to_provider_read(row, services_by_provider.get(row["id"], []))
            for row in provider_rows
        ]
        logger.debug("Retrieved %d providers from database", len(providers))
        return _provider_list_adapter.dump_json(providers)

    def _validate(self, data: ProviderRequest, action: str, provider_id: Optional[int] = None) -> None:
        violations = validate(data.model_dump(), PROVIDER_RULES)
        if violations:
            logger.error(
                "Provider %s validation failed (provider %s, name '%s', email %s, phone %s): %s",
                action,
                provider_id,
                data.name,
                data.email,
                mask_phone(data.phone),
                violations,
            )
            raise ValidationException(violations)

    def _ensure_email_available(
        self,
        cursor: sqlite3.Cursor,
        email: Optional[str],
        exclude_id: Optional[int] = None,
    ) -> None:
        existing = cursor.execute("SELECT id FROM providers WHERE email = ?", (email,)).fetchone()
        if existing is not None and existing["id"] != exclude_id:
            logger.error(
                "Duplicate email %s (conflicting provider %s)", email, existing["id"]
            )
            raise self._duplicate_email()

    @staticmethod
    def _duplicate_email() -> BusinessLogicException:
        return BusinessLogicException("Email already exists", "DUPLICATE_EMAIL")

    def _fetch_provider(self, cursor: sqlite3.Cursor, provider_id: int) -> ProviderRead:
        row = cursor.execute("SELECT * FROM providers WHERE id = ?", (provider_id,)).fetchone()
        service_rows = cursor.execute(
            "SELECT id, name, description, price, created_at, updated_at "
            "FROM services WHERE provider_id = ? ORDER BY id",
            (provider_id,),
        ).fetchall()
        return self._row_to_provider_read(
            row, [self._row_to_service_summary(service) for service in service_rows]
        )

    @staticmethod
    def _row_to_service_summary(row: sqlite3.Row) -> ProviderServiceSummary:
        return ProviderServiceSummary(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            price=row["price"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_provider_read(
        row: sqlite3.Row, services: List[ProviderServiceSummary]
    ) -> ProviderRead:
        return ProviderRead(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            address=row["address"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            services=services,
        )
