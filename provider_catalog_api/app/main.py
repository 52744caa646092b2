"""
Main entrypoint for the Provider Catalog API.

This module assembles the FastAPI application: it configures logging,
creates the tagged cache, installs the exception handlers and includes
the routers.  ``create_app`` builds and configures the app, which is
then instantiated at module import time as ``app``, e.g.::

    uvicorn provider_catalog_api.app.main:app --reload

Tests call ``create_app`` with their own ``Settings`` (pointing at a
temporary database) and an in-memory cache.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from .api.endpoints import health
from .api.router import router as api_router
from .core.cache import TaggedCache, build_cache
from .core.config import Settings, settings
from .core.db import get_database_path, init_db
from .core.exceptions import register_exception_handlers
from .core.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Apply migrations at startup.  This creates the database file if it
    # does not exist and brings the schema up to date.
    init_db(app.state.database_path)
    yield


def create_app(
    app_settings: Optional[Settings] = None,
    cache: Optional[TaggedCache] = None,
) -> FastAPI:
    """Create and configure a FastAPI application.

    Parameters
    ----------
    app_settings : Optional[Settings]
        Settings to use instead of the module-level ``settings``.
    cache : Optional[TaggedCache]
        Cache to share between requests.  When omitted, the backend
        named by ``app_settings.cache_backend`` is built.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    app_settings = app_settings or settings
    # Initialise logging before anything else so that the setup below
    # can log messages.
    setup_logging(app_settings.log_level, app_settings.log_file)

    app = FastAPI(
        title=app_settings.project_name,
        version=app_settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.database_path = get_database_path(app_settings.database_url)
    app.state.cache = cache if cache is not None else build_cache(app_settings)

    register_exception_handlers(app, debug=app_settings.debug)

    app.include_router(api_router, prefix="/api")
    app.include_router(health.router, tags=["health"])

    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()
