#!/usr/bin/env python3
"""
Maintenance commands for the Provider Catalog API.

Usage:
    python -m provider_catalog_api.cli cache:clear-tags --tags providers_tag
    python -m provider_catalog_api.cli cache:clear-tags --all
    python -m provider_catalog_api.cli stats:generate --format json

The commands read the same environment variables as the API (see
``app.core.config``), so they operate on the same database and cache
file.  With ``CACHE_BACKEND=memory`` the API process owns its cache and
``cache:clear-tags`` cannot reach it.

Exit codes: 0 on success, 1 on failure, 2 on invalid usage.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from provider_catalog_api.app.core.cache import ALL_TAGS, TaggedCache, build_cache
from provider_catalog_api.app.core.config import Settings, settings
from provider_catalog_api.app.core.db import get_database_path, init_db
from provider_catalog_api.app.core.logging_config import setup_logging
from provider_catalog_api.app.services.statistics_service import StatisticsService


EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2

logger = logging.getLogger("provider_catalog_api.cli")


def clear_tags(cache: TaggedCache, tags: List[str], clear_all: bool) -> int:
    """Invalidate ``tags``, or both collection tags when ``clear_all`` is set."""
    try:
        if clear_all:
            logger.info("Clearing all tagged cache")
            cache.invalidate_tags(ALL_TAGS)
            print("[+] All tagged cache cleared successfully.")
            return EXIT_SUCCESS

        if not tags:
            print("[!] Please specify tags to clear or use --all option.", file=sys.stderr)
            return EXIT_INVALID

        logger.info("Clearing tagged cache for %s", tags)
        cache.invalidate_tags(tags)
        print(f"[+] Cache cleared for tags: {', '.join(tags)}")
        return EXIT_SUCCESS
    except Exception as exc:
        logger.exception("Error clearing cache")
        print(f"[!] Failed to clear cache: {exc}", file=sys.stderr)
        return EXIT_FAILURE


def format_stats_table(stats: Dict[str, Any]) -> str:
    """Render ``stats`` as a two-column text table."""
    rows = [("Metric", "Value")] + [(key, str(value)) for key, value in stats.items()]
    key_width = max(len(key) for key, _ in rows)
    value_width = max(len(value) for _, value in rows)
    border = f"+-{'-' * key_width}-+-{'-' * value_width}-+"
    lines = ["System Statistics", border]
    for index, (key, value) in enumerate(rows):
        lines.append(f"| {key.ljust(key_width)} | {value.ljust(value_width)} |")
        if index == 0:
            lines.append(border)
    lines.append(border)
    return "\n".join(lines)


def generate_stats(database_path: str, output_format: str) -> int:
    """Print catalogue statistics as a table or as JSON."""
    try:
        logger.info("Generating system statistics (format=%s)", output_format)
        init_db(database_path)
        stats = asyncio.run(StatisticsService.overview(database_path))
        if output_format == "json":
            print(json.dumps(stats, indent=4))
        else:
            print(format_stats_table(stats))
        logger.info("Statistics generated successfully: %s", stats)
        return EXIT_SUCCESS
    except Exception as exc:
        logger.exception("Error generating statistics")
        print(f"[!] Failed to generate statistics: {exc}", file=sys.stderr)
        return EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provider Catalog API maintenance commands.")
    commands = parser.add_subparsers(dest="command", required=True)

    clear = commands.add_parser(
        "cache:clear-tags",
        help="Clears cache for specified tags or all tagged cache",
    )
    clear.add_argument("-t", "--tags", nargs="+", default=[], help="Specific tags to clear")
    clear.add_argument("-a", "--all", action="store_true", help="Clear all tagged cache")

    stats = commands.add_parser(
        "stats:generate",
        help="Generates statistics about providers and services",
    )
    stats.add_argument(
        "-f",
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (table or json)",
    )
    return parser


def main(argv: Optional[List[str]] = None, app_settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    app_settings = app_settings or settings
    setup_logging(app_settings.log_level, app_settings.log_file)

    if args.command == "cache:clear-tags":
        if app_settings.cache_backend.lower() == "memory":
            logger.warning("CACHE_BACKEND=memory: the API process cache is not reachable from here")
        return clear_tags(build_cache(app_settings), args.tags, args.all)
    return generate_stats(get_database_path(app_settings.database_url), args.format)


if __name__ == "__main__":
    sys.exit(main())
