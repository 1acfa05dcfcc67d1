"""Cached Tavily web search.

Queries are content-addressed: the SHA-256 of the lower-cased, trimmed
query is the cache key. A hit returns immediately; a miss goes through the
search rate limiter, calls Tavily with a hard timeout and stores the raw
results with an expiry that depends on what was searched for.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..core.cache import CachedSearch, SearchCacheStore
from ..core.exceptions import ConfigurationError, SearchError
from ..core.rate_limiter import RateLimiter
from ..utils.logger import get_logger

logger = get_logger(__name__)

SEARCH_TTL_DAYS: dict[str, int] = {
    "restaurant": 90,
    "episode": 180,
    "status": 7,
    "city": 90,
}

DEFAULT_COMPACT_LENGTH = 12000

_DAY_SECONDS = 86400


def hash_query(query: str) -> str:
    return hashlib.sha256(query.lower().strip().encode("utf-8")).hexdigest()


@dataclass
class SearchHit:
    title: str
    url: str
    content: str
    score: Optional[float] = None
    raw_content: Optional[str] = None

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> SearchHit:
        return cls(
            title=item.get("title") or "",
            url=item.get("url") or "",
            content=item.get("content") or "",
            score=item.get("score"),
            raw_content=item.get("raw_content"),
        )


@dataclass
class SearchResponse:
    """Search results plus provenance.

    Attributes:
        from_cache: True when served from the cache without a provider call.
        cached_at: Epoch seconds the results were fetched from the provider.
        search_type: ``restaurant`` | ``status`` | ``episode`` | ``city``.
    """

    query: str
    query_hash: str
    results: list[SearchHit] = field(default_factory=list)
    from_cache: bool = False
    cached_at: Optional[float] = None
    search_type: str = "restaurant"


class SearchClient:
    """Tavily search behind a TTL cache and a shared rate limiter.

    Args:
        api_key: Tavily key. Falls back to ``TAVILY_API_KEY``.
        cache: Cache store (SQLite or Supabase).
        limiter: The process-wide search rate limiter.
        timeout: Per-request timeout in seconds.
        max_results: Default result count per query.
        client: Pre-built ``AsyncTavilyClient`` (tests inject a mock).
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        cache: SearchCacheStore,
        limiter: RateLimiter | None = None,
        timeout: float = 30.0,
        max_results: int = 10,
        search_depth: str = "advanced",
        client: Any = None,
    ) -> None:
        self._api_key = api_key
        self._cache = cache
        self._limiter = limiter
        self._timeout = timeout
        self._max_results = max_results
        self._search_depth = search_depth
        self._client = client

    @property
    def cache(self) -> SearchCacheStore:
        return self._cache

    def _get_client(self) -> Any:
        if self._client is None:
            from tavily import AsyncTavilyClient

            key = self._api_key or os.environ.get("TAVILY_API_KEY")
            if not key:
                raise ConfigurationError(
                    "Tavily API key is required. Set TAVILY_API_KEY or pass api_key to SearchClient()"
                )
            self._client = AsyncTavilyClient(api_key=key)
        return self._client

    async def search(
        self,
        query: str,
        entity_type: str = "restaurant",
        *,
        entity_id: str | None = None,
        entity_name: str | None = None,
        ttl_days: int | None = None,
        skip_cache: bool = False,
        max_results: int | None = None,
        search_type: str | None = None,
    ) -> SearchResponse:
        """Return results for *query*, from cache when a live row exists.

        Raises:
            SearchError: The provider failed or timed out.
        """
        query_hash = hash_query(query)
        search_type = search_type or entity_type

        if not skip_cache:
            cached = await self._cache.get(query_hash)
            if cached is not None:
                logger.debug("Search cache hit for %r", query)
                return SearchResponse(
                    query=query,
                    query_hash=query_hash,
                    results=[SearchHit.from_dict(item) for item in cached.results],
                    from_cache=True,
                    cached_at=cached.fetched_at,
                    search_type=search_type,
                )

        raw_results = await self._fetch(query, max_results or self._max_results)

        ttl = ttl_days if ttl_days is not None else SEARCH_TTL_DAYS.get(search_type, 30)
        now = time.time()
        await self._cache.put(CachedSearch(
            query=query,
            query_hash=query_hash,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            results=raw_results,
            fetched_at=now,
            expires_at=now + ttl * _DAY_SECONDS,
        ))

        return SearchResponse(
            query=query,
            query_hash=query_hash,
            results=[SearchHit.from_dict(item) for item in raw_results],
            from_cache=False,
            cached_at=now,
            search_type=search_type,
        )

    async def _fetch(self, query: str, max_results: int) -> list[dict[str, Any]]:
        client = self._get_client()

        async def _request() -> dict[str, Any]:
            return await asyncio.wait_for(
                client.search(
                    query=query,
                    search_depth=self._search_depth,
                    max_results=max_results,
                    include_raw_content=True,
                ),
                timeout=self._timeout,
            )

        try:
            if self._limiter is not None:
                response = await self._limiter.add(_request)
            else:
                response = await _request()
        except asyncio.TimeoutError as exc:
            raise SearchError(f"Search timed out after {self._timeout:.0f}s", query=query) from exc
        except Exception as exc:
            raise SearchError(f"Search request failed: {exc}", query=query) from exc

        results = list((response or {}).get("results") or [])
        logger.info("Tavily returned %d results for %r", len(results), query)
        return results

    # -- query builders ----------------------------------------------------

    async def search_restaurant(
        self, name: str, city: str, state: str | None = None, restaurant_id: str | None = None
    ) -> SearchResponse:
        location = f"{city}, {state}" if state else city
        query = f"{name} {location} Diners Drive-ins Dives Guy Fieri cuisine menu featured"
        return await self.search(query, "restaurant", entity_id=restaurant_id, entity_name=name)

    async def search_status(
        self, name: str, city: str, state: str | None = None, restaurant_id: str | None = None
    ) -> SearchResponse:
        location = f"{city}, {state}" if state else city
        query = f"{name} {location} restaurant open closed status 2024 2025"
        return await self.search(
            query, "restaurant", entity_id=restaurant_id, entity_name=name, search_type="status",
        )

    async def search_episode(
        self, season: int, episode_number: int, title: str, episode_id: str | None = None
    ) -> SearchResponse:
        query = f"Diners Drive-ins Dives Season {season} Episode {episode_number} {title} Guy Fieri restaurants"
        return await self.search(query, "episode", entity_id=episode_id, entity_name=title)

    async def search_city(self, city: str, state: str, city_id: str | None = None) -> SearchResponse:
        query = f"Diners Drive-ins Dives {city} {state} Guy Fieri restaurants featured"
        return await self.search(query, "city", entity_id=city_id, entity_name=f"{city}, {state}")


def combine_search_results(responses: Iterable[SearchResponse]) -> str:
    """Verbose prompt context: every hit with its title and URL."""
    blocks = [
        f"Source: {hit.title}\nURL: {hit.url}\n{hit.content}"
        for response in responses
        for hit in response.results
    ]
    return "\n\n---\n\n".join(blocks)


def combine_search_results_compact(
    responses: Iterable[SearchResponse], max_length: int = DEFAULT_COMPACT_LENGTH
) -> str:
    """Concatenate ``[title]\\ncontent`` blocks until *max_length* would be exceeded.

    Stops at the first block that does not fit; blocks are never truncated.
    Separators count toward the budget, so the result never exceeds it.
    """
    separator = "\n\n"
    blocks: list[str] = []
    current_length = 0
    for response in responses:
        for hit in response.results:
            entry = f"[{hit.title}]\n{hit.content}"
            added = len(entry) + (len(separator) if blocks else 0)
            if current_length + added > max_length:
                return separator.join(blocks)
            blocks.append(entry)
            current_length += added
    return separator.join(blocks)
