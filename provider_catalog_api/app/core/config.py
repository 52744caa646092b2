"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
API can be started without any configuration; a ``.env`` loader or a
process manager may export the variables before the interpreter
starts.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Provider Catalog API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")

    # ``dev`` exposes exception messages and tracebacks in 500 responses.
    # Any other value hides them behind a generic message.
    environment: str = os.getenv("APP_ENV", "prod")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE") or None

    # Path to the SQLite database file.  A relative path is resolved
    # relative to the package root by ``core.db.get_database_path``.
    database_url: str = os.getenv("DATABASE_URL", "provider_catalog.db")

    # ``sqlite`` keeps cached snapshots in a file shared with the
    # maintenance CLI; ``memory`` keeps them inside the API process.
    cache_backend: str = os.getenv("CACHE_BACKEND", "sqlite")
    cache_url: str = os.getenv("CACHE_URL", "provider_catalog_cache.db")
    cache_ttl: int = int(os.getenv("CACHE_TTL", "3600"))
    cache_max_size: int = int(os.getenv("CACHE_MAX_SIZE", "1024"))

    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8000"))

    @property
    def debug(self) -> bool:
        return self.environment == "dev"


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Because the dataclass
# computes values at class definition time, environment variables should
# be set before importing this module.
settings = Settings()
