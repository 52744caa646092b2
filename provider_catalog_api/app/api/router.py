"""
Top‑level API router.

Aggregates the per‑resource routers.  ``main.create_app`` mounts it
under ``/api``; the health probe is mounted separately at the root.
"""

from fastapi import APIRouter

from .endpoints import providers, services

router = APIRouter()

router.include_router(providers.router, tags=["providers"])
router.include_router(services.router, tags=["services"])
