"""
Top‑level package for the Provider Catalog API.

This file makes ``provider_catalog_api`` a regular package so that
modules within ``app`` can be imported using fully qualified names
like ``provider_catalog_api.app.main`` and so that the maintenance
commands in ``cli`` can be run with ``python -m``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
