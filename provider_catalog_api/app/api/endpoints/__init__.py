"""
Endpoint subpackage.

Each module in this package defines an APIRouter for one resource
(providers, services) or for operational probes (health).  The
routers are aggregated in ``api/router.py``.
"""
