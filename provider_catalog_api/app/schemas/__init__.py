"""
Pydantic schema definitions for API payloads.

Request schemas describe the raw JSON accepted from clients; business
constraints are checked afterwards by ``core.validation`` so that all
violations can be reported at once.  Read schemas describe the views
returned by the API and stored in the cache.
"""
