"""
Service layer abstraction.

Each service encapsulates the business logic for one resource:
validation, persistence, cache invalidation and serialization.  The
tagged cache is passed in by the caller so that tests can supply an
in‑memory cache and the HTTP layer can share one cache per process.
"""
