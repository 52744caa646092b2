"""
Service layer for catalogue statistics.

Used by the ``stats:generate`` maintenance command.  All queries are
read‑only.  Prices are summed with ``Decimal`` because they are stored
as fixed‑point strings.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from provider_catalog_api.app.core.db import get_connection


class StatisticsService:
    """Aggregated metrics over providers and services."""

    @classmethod
    async def overview(cls, database_path: Optional[str] = None) -> Dict[str, Any]:
        """Return a dictionary with catalogue-wide metrics.

        ``avg_services_per_provider`` is rounded to two decimals and is
        ``0`` when there are no providers.
        """
        conn = get_connection(database_path)
        try:
            cursor = conn.cursor()
            total_providers = cursor.execute("SELECT COUNT(*) FROM providers").fetchone()[0]
            total_services = cursor.execute("SELECT COUNT(*) FROM services").fetchone()[0]
            providers_without_services = cursor.execute(
                """
                SELECT COUNT(*) FROM providers p
                WHERE NOT EXISTS (SELECT 1 FROM services s WHERE s.provider_id = p.id)
                """
            ).fetchone()[0]
            prices = [row[0] for row in cursor.execute("SELECT price FROM services")]
        finally:
            conn.close()

        total_value = sum((Decimal(price) for price in prices), Decimal("0"))
        return {
            "total_providers": total_providers,
            "total_services": total_services,
            "avg_services_per_provider": (
                round(total_services / total_providers, 2) if total_providers else 0
            ),
            "providers_without_services": providers_without_services,
            "total_service_value": float(total_value),
        }
