"""Entry point for the Provider Catalog API.

This script launches the FastAPI application with Uvicorn.  It is
intended to be executed from the project root, for example under
Docker, where you only specify a single Python file to run.

Configuration such as ``DATABASE_URL``, ``CACHE_BACKEND`` or
``LOG_LEVEL`` is read from environment variables; see
``provider_catalog_api/app/core/config.py`` for the full list.

Usage:
    python run.py
"""
import asyncio
import logging

from uvicorn import Config, Server

from provider_catalog_api.app.core.config import settings
from provider_catalog_api.app.main import app


async def main() -> None:
    """Serve the API until interrupted.

    Host and port are read from ``settings`` (``API_HOST`` and
    ``API_PORT``).  Defaults are ``0.0.0.0`` and ``8000``.
    """
    config = Config(
        app=app,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logging.getLogger(__name__).info("API stopped")
