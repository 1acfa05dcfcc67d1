"""Search cache stored in the shared Supabase ``cache`` table.

Unlike the other repositories this one raises on failure: it backs
``SearchClient`` directly, where a store error is a provider-level failure.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Optional

from ..core.cache import CachedSearch, CacheStats
from ..utils.logger import get_logger
from .base import SupabaseRepository

logger = get_logger(__name__)


def _to_iso(epoch: Optional[float]) -> Optional[str]:
    if epoch is None:
        return None
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()


def _to_epoch(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp()


class SupabaseSearchCache(SupabaseRepository):
    """``SearchCacheStore`` over the ``cache`` table."""

    async def get(self, query_hash: str) -> CachedSearch | None:
        now = _to_iso(time.time())
        response = await self._execute(
            self.table("cache")
            .select("*")
            .eq("query_hash", query_hash)
            .or_(f"expires_at.is.null,expires_at.gt.{now}")
            .order("fetched_at", desc=True)
            .limit(1)
        )
        rows = response.data or []
        if not rows:
            return None

        row = rows[0]
        return CachedSearch(
            query=row.get("query") or "",
            query_hash=row["query_hash"],
            entity_type=row.get("entity_type") or "restaurant",
            entity_id=row.get("entity_id"),
            entity_name=row.get("entity_name"),
            results=row.get("results") or [],
            source=row.get("source") or "tavily",
            fetched_at=_to_epoch(row.get("fetched_at")) or 0.0,
            expires_at=_to_epoch(row.get("expires_at")),
        )

    async def put(self, entry: CachedSearch) -> None:
        await self._execute(
            self.table("cache").insert({
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "entity_name": entry.entity_name,
                "query": entry.query,
                "query_hash": entry.query_hash,
                "results": entry.results,
                "result_count": len(entry.results),
                "source": entry.source,
                "fetched_at": _to_iso(entry.fetched_at),
                "expires_at": _to_iso(entry.expires_at),
            })
        )

    async def stats(self) -> CacheStats:
        response = await self._execute(self.table("cache").select("entity_type, source, expires_at"))
        now = time.time()
        stats = CacheStats()
        for row in response.data or []:
            stats.total += 1
            entity_type = row.get("entity_type") or "unknown"
            source = row.get("source") or "unknown"
            stats.by_type[entity_type] = stats.by_type.get(entity_type, 0) + 1
            stats.by_source[source] = stats.by_source.get(source, 0) + 1
            expires_at = _to_epoch(row.get("expires_at"))
            if expires_at is not None and expires_at <= now:
                stats.expired += 1
        return stats

    async def invalidate(self, entity_type: str, entity_id: str | None = None) -> int:
        query = self.table("cache").delete().eq("entity_type", entity_type)
        if entity_id is not None:
            query = query.eq("entity_id", entity_id)
        response = await self._execute(query)
        deleted = len(response.data or [])
        logger.info("Invalidated %d cache rows for %s %s", deleted, entity_type, entity_id or "(all)")
        return deleted
