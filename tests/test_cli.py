"""Tests for the maintenance commands and the statistics service."""

from __future__ import annotations

import json

import pytest

from provider_catalog_api.app.core.cache import MemoryTaggedCache, SQLiteTaggedCache
from provider_catalog_api.app.core.config import Settings
from provider_catalog_api.app.core.db import get_connection
from provider_catalog_api.app.services.statistics_service import StatisticsService
from provider_catalog_api.cli import (
    EXIT_FAILURE,
    EXIT_INVALID,
    EXIT_SUCCESS,
    clear_tags,
    format_stats_table,
    main,
)


class ExplodingCache(MemoryTaggedCache):
    def invalidate_tags(self, tags) -> None:
        raise ConnectionError("cache unavailable")


def _seed(database_path: str) -> None:
    conn = get_connection(database_path)
    try:
        conn.executemany(
            "INSERT INTO providers (id, name, email, phone, address) VALUES (?, ?, ?, ?, ?)",
            [
                (1, "Jane Doe", "jane@x.com", "+15551234567", "123 Main St"),
                (2, "John Roe", "john@x.com", "+15557654321", "456 Oak Avenue"),
                (3, "Ann Poe", "ann@x.com", "+15550000000", "789 Pine Road"),
            ],
        )
        conn.executemany(
            "INSERT INTO services (name, description, price, provider_id) VALUES (?, ?, ?, ?)",
            [
                ("Pipe inspection", "Pipes", "49.90", 1),
                ("Drain cleaning", "Drains", "10.05", 1),
                ("Roof repair", "Roofs", "100.00", 2),
            ],
        )
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def cli_settings(tmp_path, database_path) -> Settings:
    return Settings(
        database_url=database_path,
        cache_backend="sqlite",
        cache_url=str(tmp_path / "cache.db"),
        log_level="WARNING",
    )


class TestClearTags:
    def test_all(self, capsys) -> None:
        cache = MemoryTaggedCache()
        cache.get("providers_list", lambda: b"[]", tags={"providers_tag"})
        cache.get("services_list", lambda: b"[]", tags={"services_tag"})

        assert clear_tags(cache, [], clear_all=True) == EXIT_SUCCESS
        assert "providers_list" not in cache
        assert "services_list" not in cache
        assert "All tagged cache cleared successfully" in capsys.readouterr().out

    def test_specific_tags(self, capsys) -> None:
        cache = MemoryTaggedCache()
        cache.get("providers_list", lambda: b"[]", tags={"providers_tag"})
        cache.get("services_list", lambda: b"[]", tags={"services_tag"})

        assert clear_tags(cache, ["services_tag"], clear_all=False) == EXIT_SUCCESS
        assert "providers_list" in cache
        assert "services_list" not in cache
        assert "Cache cleared for tags: services_tag" in capsys.readouterr().out

    def test_nothing_to_clear_is_invalid_usage(self, capsys) -> None:
        assert clear_tags(MemoryTaggedCache(), [], clear_all=False) == EXIT_INVALID
        assert "Please specify tags" in capsys.readouterr().err

    def test_cache_failure(self, capsys) -> None:
        assert clear_tags(ExplodingCache(), ["providers_tag"], clear_all=False) == EXIT_FAILURE
        assert "Failed to clear cache: cache unavailable" in capsys.readouterr().err


class TestMain:
    def test_clear_tags_reaches_the_shared_cache(self, cli_settings, capsys) -> None:
        api_cache = SQLiteTaggedCache(cli_settings.cache_url)
        calls = []

        def producer() -> bytes:
            calls.append(1)
            return b"[]"

        api_cache.get("providers_list", producer, tags={"providers_tag"})
        code = main(["cache:clear-tags", "--tags", "providers_tag"], app_settings=cli_settings)
        api_cache.get("providers_list", producer, tags={"providers_tag"})

        assert code == EXIT_SUCCESS
        assert len(calls) == 2

    def test_clear_tags_without_arguments(self, cli_settings) -> None:
        assert main(["cache:clear-tags"], app_settings=cli_settings) == EXIT_INVALID

    def test_stats_json(self, cli_settings, database_path, capsys) -> None:
        _seed(database_path)
        assert main(["stats:generate", "--format", "json"], app_settings=cli_settings) == EXIT_SUCCESS
        stats = json.loads(capsys.readouterr().out)
        assert stats["total_providers"] == 3
        assert stats["total_services"] == 3

    def test_stats_table(self, cli_settings, capsys) -> None:
        assert main(["stats:generate"], app_settings=cli_settings) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert out.startswith("System Statistics")
        assert "| Metric" in out
        assert "total_providers" in out

    def test_unknown_format_is_rejected_by_argparse(self, cli_settings) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["stats:generate", "-f", "xml"], app_settings=cli_settings)
        assert exc_info.value.code == 2


class TestStatistics:
    @pytest.mark.asyncio
    async def test_overview(self, database_path) -> None:
        _seed(database_path)
        assert await StatisticsService.overview(database_path) == {
            "total_providers": 3,
            "total_services": 3,
            "avg_services_per_provider": 1.0,
            "providers_without_services": 1,
            "total_service_value": 159.95,
        }

    @pytest.mark.asyncio
    async def test_overview_of_empty_catalogue(self, database_path) -> None:
        stats = await StatisticsService.overview(database_path)
        assert stats["avg_services_per_provider"] == 0
        assert stats["total_service_value"] == 0.0


def test_format_stats_table_aligns_columns() -> None:
    table = format_stats_table({"total_providers": 12, "x": 3})
    lines = table.splitlines()
    assert lines[0] == "System Statistics"
    assert len({len(line) for line in lines[1:]}) == 1
