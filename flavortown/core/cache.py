"""Search result cache: content-addressed by query hash.

``SearchCache`` is the local SQLite store (WAL mode, one ``search_cache.db``
file). ``flavortown.repositories.cache.SupabaseSearchCache`` implements the
same protocol against the shared ``cache`` table.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable


@dataclass
class CachedSearch:
    """One cached provider response.

    ``fetched_at`` and ``expires_at`` are epoch seconds; ``expires_at`` of
    None means the row never expires.
    """

    query: str
    query_hash: str
    entity_type: str
    results: list[dict[str, Any]]
    fetched_at: float
    expires_at: Optional[float] = None
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    source: str = "tavily"

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at


@dataclass
class CacheStats:
    total: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_source: dict[str, int] = field(default_factory=dict)
    expired: int = 0


@runtime_checkable
class SearchCacheStore(Protocol):
    """Storage contract used by ``SearchClient``."""

    async def get(self, query_hash: str) -> CachedSearch | None: ...

    async def put(self, entry: CachedSearch) -> None: ...

    async def stats(self) -> CacheStats: ...

    async def invalidate(self, entity_type: str, entity_id: str | None = None) -> int: ...


class SearchCache:
    """SQLite-backed search cache.

    Duplicate rows for one hash are allowed; lookups return the newest row
    that has not expired. Expired rows are skipped lazily on ``get()`` and
    bulk-removed via ``cleanup_expired()``. Queries behind the async methods
    run on a worker thread; one lock serializes access to the connection.

    Args:
        cache_dir: Directory for ``search_cache.db``. Created if absent.
    """

    def __init__(self, cache_dir: str = ".flavortown") -> None:
        self._cache_dir = Path(cache_dir)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _ensure_connection(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        self._cache_dir.mkdir(parents=True, exist_ok=True)
        db_path = self._cache_dir / "search_cache.db"

        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS cache (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                query       TEXT NOT NULL,
                query_hash  TEXT NOT NULL,
                entity_type TEXT NOT NULL,
                entity_id   TEXT,
                entity_name TEXT,
                results     TEXT NOT NULL,
                result_count INTEGER NOT NULL,
                source      TEXT NOT NULL,
                fetched_at  REAL NOT NULL,
                expires_at  REAL
            )
        """)
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_query_hash ON cache(query_hash)")
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_entity ON cache(entity_type, entity_id)")
        self._conn.commit()
        return self._conn

    async def get(self, query_hash: str) -> CachedSearch | None:
        """Return the newest non-expired row for *query_hash*, or None."""
        return await asyncio.to_thread(self._get, query_hash)

    def _get(self, query_hash: str) -> CachedSearch | None:
        with self._lock:
            row = self._ensure_connection().execute(
                "SELECT query, query_hash, entity_type, entity_id, entity_name, results, "
                "source, fetched_at, expires_at FROM cache "
                "WHERE query_hash = ? AND (expires_at IS NULL OR expires_at > ?) "
                "ORDER BY fetched_at DESC, id DESC LIMIT 1",
                (query_hash, time.time()),
            ).fetchone()
        if row is None:
            return None

        query, qhash, entity_type, entity_id, entity_name, results, source, fetched_at, expires_at = row
        return CachedSearch(
            query=query,
            query_hash=qhash,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            results=json.loads(results),
            source=source,
            fetched_at=fetched_at,
            expires_at=expires_at,
        )

    async def put(self, entry: CachedSearch) -> None:
        await asyncio.to_thread(self._put, entry)

    def _put(self, entry: CachedSearch) -> None:
        with self._lock:
            conn = self._ensure_connection()
            conn.execute(
                "INSERT INTO cache (query, query_hash, entity_type, entity_id, entity_name, "
                "results, result_count, source, fetched_at, expires_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    entry.query,
                    entry.query_hash,
                    entry.entity_type,
                    entry.entity_id,
                    entry.entity_name,
                    json.dumps(entry.results, default=str),
                    len(entry.results),
                    entry.source,
                    entry.fetched_at,
                    entry.expires_at,
                ),
            )
            conn.commit()

    async def stats(self) -> CacheStats:
        return await asyncio.to_thread(self._stats)

    def _stats(self) -> CacheStats:
        with self._lock:
            rows = self._ensure_connection().execute(
                "SELECT entity_type, source, expires_at FROM cache"
            ).fetchall()
        now = time.time()
        stats = CacheStats()
        for entity_type, source, expires_at in rows:
            stats.total += 1
            stats.by_type[entity_type] = stats.by_type.get(entity_type, 0) + 1
            stats.by_source[source] = stats.by_source.get(source, 0) + 1
            if expires_at is not None and expires_at <= now:
                stats.expired += 1
        return stats

    async def invalidate(self, entity_type: str, entity_id: str | None = None) -> int:
        """Delete rows for an entity type (optionally one entity). Returns count deleted."""
        return await asyncio.to_thread(self._invalidate, entity_type, entity_id)

    def _invalidate(self, entity_type: str, entity_id: str | None) -> int:
        with self._lock:
            conn = self._ensure_connection()
            if entity_id is None:
                cursor = conn.execute("DELETE FROM cache WHERE entity_type = ?", (entity_type,))
            else:
                cursor = conn.execute(
                    "DELETE FROM cache WHERE entity_type = ? AND entity_id = ?",
                    (entity_type, entity_id),
                )
            conn.commit()
            return cursor.rowcount

    def delete_all(self) -> int:
        """Delete all cache entries. Returns count deleted."""
        with self._lock:
            conn = self._ensure_connection()
            cursor = conn.execute("DELETE FROM cache")
            conn.commit()
            return cursor.rowcount

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count deleted."""
        with self._lock:
            conn = self._ensure_connection()
            cursor = conn.execute(
                "DELETE FROM cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (time.time(),),
            )
            conn.commit()
            return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
