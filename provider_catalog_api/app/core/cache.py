"""
Tag-aware read-through cache.

Collection snapshots (serialized JSON, as ``bytes``) are stored under a
logical key together with a set of tags.  ``invalidate_tags`` drops
every entry carrying any of the given tags, so a write only has to
name the collections it affects, never the individual keys.

Two backends implement :class:`TaggedCache`:

* :class:`MemoryTaggedCache` keeps entries in a ``cachetools.TLRUCache``
  inside the current process.  It is used by the test-suite and by
  single-process deployments.
* :class:`SQLiteTaggedCache` keeps entries in a SQLite file so that the
  maintenance CLI, running as a separate process, can invalidate the
  snapshots served by the API.

Neither backend de-duplicates concurrent misses: two callers missing
the same key may both run the producer.  Producers are plain reads, so
the duplicate work has no effect on correctness.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from cachetools import TLRUCache

from .config import Settings
from .db import get_database_path


logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600

PROVIDERS_LIST_KEY = "providers_list"
SERVICES_LIST_KEY = "services_list"
PROVIDERS_TAG = "providers_tag"
SERVICES_TAG = "services_tag"
ALL_TAGS = frozenset({PROVIDERS_TAG, SERVICES_TAG})
# Version row bumped by ``clear_all``; not a tag entries are stored under.
EPOCH_TAG = "*"


class TaggedCache(ABC):
    """Contract for the read-through cache shared by the resource services."""

    def __init__(self, default_ttl: int = DEFAULT_TTL) -> None:
        self.default_ttl = default_ttl

    @abstractmethod
    def get(
        self,
        key: str,
        producer: Callable[[], bytes],
        tags: Iterable[str] = (),
        ttl: Optional[int] = None,
    ) -> bytes:
        """Return the snapshot stored under *key*, computing it on a miss.

        On a miss (absent, expired or invalidated) ``producer()`` is
        called, its result is stored for *ttl* seconds (default
        ``default_ttl``) under *tags* and returned.
        """

    @abstractmethod
    def invalidate_tags(self, tags: Iterable[str]) -> None:
        """Atomically remove every entry associated with any of *tags*.

        Tags without entries are ignored.
        """

    @abstractmethod
    def clear_all(self) -> None:
        """Remove every entry."""


class _Entry(NamedTuple):
    payload: bytes
    tags: frozenset
    ttl: int


def _entry_expiry(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryTaggedCache(TaggedCache):
    """In-process tagged cache backed by ``cachetools.TLRUCache``.

    ``TLRUCache`` gives every entry its own expiry time and evicts the
    least recently used entry once ``max_size`` is reached.  A separate
    tag index maps each tag to the keys stored under it.  The index may
    keep keys that have already expired or been evicted; invalidating
    such a key is a no-op.

    Every tag also has a generation counter, bumped by each
    invalidation (``clear_all`` bumps a global epoch).  A miss records
    the generations of its tags before running the producer and only
    stores the result if none of them moved in the meantime.

    Parameters
    ----------
    max_size:
        Maximum number of cached snapshots.
    default_ttl:
        Time-to-live in seconds when ``get`` is called without ``ttl``.
    timer:
        Clock used for expiry; tests pass a controllable clock.
    """

    def __init__(
        self,
        max_size: int = 1024,
        default_ttl: int = DEFAULT_TTL,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(default_ttl)
        self._entries: TLRUCache = TLRUCache(maxsize=max_size, ttu=_entry_expiry, timer=timer)
        self._tag_index: Dict[str, Set[str]] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.RLock()

    def _versions(self, tags: Tuple[str, ...]) -> Tuple[int, ...]:
        return (self._epoch,) + tuple(self._generations.get(tag, 0) for tag in tags)

    def get(
        self,
        key: str,
        producer: Callable[[], bytes],
        tags: Iterable[str] = (),
        ttl: Optional[int] = None,
    ) -> bytes:
        tags = tuple(sorted(set(tags)))
        with self._lock:
            entry = self._entries.get(key)
            versions = self._versions(tags)
        if entry is not None:
            logger.debug("Cache hit for %s", key)
            return entry.payload

        logger.debug("Cache miss for %s", key)
        payload = producer()
        entry = _Entry(payload, frozenset(tags), ttl if ttl is not None else self.default_ttl)
        with self._lock:
            if self._versions(tags) != versions:
                logger.debug("Tags of %s invalidated while computing, not storing", key)
                return payload
            self._entries[key] = entry
            for tag in entry.tags:
                self._tag_index.setdefault(tag, set()).add(key)
        return payload

    def invalidate_tags(self, tags: Iterable[str]) -> None:
        tags = set(tags)
        removed = 0
        with self._lock:
            for tag in tags:
                self._generations[tag] = self._generations.get(tag, 0) + 1
                for key in self._tag_index.pop(tag, ()):
                    if self._entries.pop(key, None) is not None:
                        removed += 1
        logger.debug("Invalidated tags %s (%d entries)", sorted(tags), removed)

    def clear_all(self) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()
            self._tag_index.clear()
        logger.debug("Cleared all cache entries")

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


class SQLiteTaggedCache(TaggedCache):
    """Tagged cache persisted in a SQLite file.

    Entries live in ``cache_entries`` (key, payload, absolute expiry as a
    UNIX timestamp) and their tags in ``cache_tags``.  Wall-clock time is
    used for expiry because entries are shared between processes.  Each
    invalidation runs in a single transaction.

    ``cache_tag_versions`` counts invalidations per tag (``clear_all``
    bumps the ``EPOCH_TAG`` row).  A miss reads the counters before
    running the producer and stores its result only if they are
    unchanged, so an invalidation issued by any process during the
    computation is never overwritten by the older snapshot.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS cache_entries (
            key TEXT PRIMARY KEY,
            payload BLOB NOT NULL,
            expires_at REAL NOT NULL
        );
        CREATE TABLE IF NOT EXISTS cache_tags (
            tag TEXT NOT NULL,
            key TEXT NOT NULL,
            PRIMARY KEY (tag, key)
        );
        CREATE TABLE IF NOT EXISTS cache_tag_versions (
            tag TEXT PRIMARY KEY,
            version INTEGER NOT NULL
        );
    """

    def __init__(
        self,
        path: str,
        default_ttl: int = DEFAULT_TTL,
        timer: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(default_ttl)
        self.path = path
        self._timer = timer
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=10)
        if not self._schema_ready:
            with self._schema_lock:
                if not self._schema_ready:
                    conn.executescript(self.SCHEMA)
                    self._schema_ready = True
        return conn

    def get(
        self,
        key: str,
        producer: Callable[[], bytes],
        tags: Iterable[str] = (),
        ttl: Optional[int] = None,
    ) -> bytes:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT payload FROM cache_entries WHERE key = ? AND expires_at > ?",
                (key, self._timer()),
            ).fetchone()
            if row is not None:
                logger.debug("Cache hit for %s", key)
                return bytes(row[0])

            logger.debug("Cache miss for %s", key)
            tags = sorted(set(tags))
            versions = self._versions(conn, tags)
            payload = producer()
            expires_at = self._timer() + (ttl if ttl is not None else self.default_ttl)
            with conn:
                # Holding the write lock, so no invalidation can slip in
                # between this check and the insert.
                conn.execute("BEGIN IMMEDIATE")
                if self._versions(conn, tags) != versions:
                    logger.debug("Tags of %s invalidated while computing, not storing", key)
                    return payload
                conn.execute(
                    "INSERT OR REPLACE INTO cache_entries (key, payload, expires_at) VALUES (?, ?, ?)",
                    (key, sqlite3.Binary(payload), expires_at),
                )
                conn.execute("DELETE FROM cache_tags WHERE key = ?", (key,))
                conn.executemany(
                    "INSERT OR IGNORE INTO cache_tags (tag, key) VALUES (?, ?)",
                    [(tag, key) for tag in tags],
                )
            return payload
        finally:
            conn.close()

    @staticmethod
    def _versions(conn: sqlite3.Connection, tags: List[str]) -> List[int]:
        names = [EPOCH_TAG] + tags
        placeholders = ", ".join("?" for _ in names)
        rows = conn.execute(
            f"SELECT tag, version FROM cache_tag_versions WHERE tag IN ({placeholders})",
            names,
        ).fetchall()
        found = dict(rows)
        return [found.get(name, 0) for name in names]

    @staticmethod
    def _bump_versions(conn: sqlite3.Connection, tags: Iterable[str]) -> None:
        conn.executemany(
            """
            INSERT INTO cache_tag_versions (tag, version) VALUES (?, 1)
            ON CONFLICT(tag) DO UPDATE SET version = version + 1
            """,
            [(tag,) for tag in tags],
        )

    def invalidate_tags(self, tags: Iterable[str]) -> None:
        tags = sorted(set(tags))
        if not tags:
            return
        placeholders = ", ".join("?" for _ in tags)
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    f"DELETE FROM cache_entries WHERE key IN "
                    f"(SELECT key FROM cache_tags WHERE tag IN ({placeholders}))",
                    tags,
                )
                removed = cursor.rowcount
                conn.execute(
                    "DELETE FROM cache_tags WHERE key NOT IN (SELECT key FROM cache_entries)"
                )
                self._bump_versions(conn, tags)
        finally:
            conn.close()
        logger.debug("Invalidated tags %s (%d entries)", tags, removed)

    def clear_all(self) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM cache_entries")
                conn.execute("DELETE FROM cache_tags")
                self._bump_versions(conn, [EPOCH_TAG])
        finally:
            conn.close()
        logger.debug("Cleared all cache entries")


def build_cache(app_settings: Settings) -> TaggedCache:
    """Create the cache backend selected by ``app_settings.cache_backend``."""
    backend = app_settings.cache_backend.lower()
    if backend == "memory":
        return MemoryTaggedCache(
            max_size=app_settings.cache_max_size,
            default_ttl=app_settings.cache_ttl,
        )
    if backend == "sqlite":
        return SQLiteTaggedCache(
            get_database_path(app_settings.cache_url),
            default_ttl=app_settings.cache_ttl,
        )
    raise ValueError(f"Unknown cache backend: {app_settings.cache_backend!r}")


def invalidate_after_write(cache: TaggedCache, tags: Iterable[str], action: str) -> None:
    """Invalidate *tags* once a write has committed.

    A failure here leaves stale snapshots behind until they expire; the
    write itself has already succeeded, so the error is logged and not
    raised.
    """
    tags = sorted(set(tags))
    try:
        cache.invalidate_tags(tags)
    except Exception:
        logger.exception("Cache invalidation failed after %s (tags=%s)", action, tags)
        return
    logger.debug("Cache invalidated after %s (tags=%s)", action, tags)
