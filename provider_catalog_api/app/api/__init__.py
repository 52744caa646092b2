"""
HTTP layer of the API.

``router`` aggregates the per‑resource endpoint modules and is mounted
by ``main.create_app`` under the ``/api`` prefix.  ``dependencies``
builds the resource services for each request from the application
state (database path and the shared tagged cache).
"""
