"""
Application package initializer.

The API manages two related resources: providers and the services
they offer.  Each resource has a pydantic schema module, a service
class holding the business logic and a router under
``api/endpoints``.  Cross‑cutting pieces (configuration, logging,
database access, the tagged cache and error translation) live in
``core``.
"""

from .main import app  # noqa: F401
