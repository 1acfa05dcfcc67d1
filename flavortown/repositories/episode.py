"""Data access for the ``episodes`` table."""

from __future__ import annotations

from typing import Any, Optional

from ..schemas.records import EpisodeRecord, EpisodeRestaurantRecord
from .base import Err, Ok, Result, SupabaseRepository, utc_now_iso

_EPISODE_RESTAURANTS_SELECT = "restaurant_id, restaurants!inner (id, name, city, state, slug)"


class EpisodeRepository(SupabaseRepository):

    async def get_by_id(self, episode_id: str) -> Result[EpisodeRecord]:
        try:
            response = await self._execute(
                self.table("episodes").select("*").eq("id", episode_id).limit(1)
            )
            rows = response.data or []
            if not rows:
                return Err(f"get_by_id failed for episode {episode_id}: not found")
            return Ok(EpisodeRecord.model_validate(rows[0]))
        except Exception as exc:
            return Err(f"get_by_id exception for episode {episode_id}: {exc}")

    async def get_all_episodes(self) -> Result[list[EpisodeRecord]]:
        try:
            response = await self._execute(
                self.table("episodes")
                .select("*")
                .order("season", desc=False)
                .order("episode_number", desc=False)
            )
            return Ok([EpisodeRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"get_all_episodes exception: {exc}")

    async def find_for_meta_description(
        self, limit: int | None = None, include_described: bool = False
    ) -> Result[list[EpisodeRecord]]:
        """Episodes without a meta description (all episodes when *include_described*)."""
        try:
            query = self.table("episodes").select("*")
            if not include_described:
                query = query.is_("meta_description", "null")
            query = query.order("season", desc=False).order("episode_number", desc=False)
            if limit is not None:
                query = query.limit(limit)
            response = await self._execute(query)
            return Ok([EpisodeRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"find_for_meta_description exception: {exc}")

    async def get_episode_restaurants(self, episode_id: str) -> Result[list[EpisodeRestaurantRecord]]:
        """Restaurants featured in an episode, flattened from the join table."""
        try:
            response = await self._execute(
                self.table("restaurant_episodes")
                .select(_EPISODE_RESTAURANTS_SELECT)
                .eq("episode_id", episode_id)
            )
            restaurants = [
                EpisodeRestaurantRecord.model_validate(item["restaurants"])
                for item in response.data or []
                if item.get("restaurants")
            ]
            return Ok(restaurants)
        except Exception as exc:
            return Err(f"get_episode_restaurants exception for episode {episode_id}: {exc}")

    async def _update(self, episode_id: str, values: dict[str, Any], op: str) -> Result[None]:
        try:
            await self._execute(
                self.table("episodes").update({**values, "updated_at": utc_now_iso()}).eq("id", episode_id)
            )
            return Ok(None)
        except Exception as exc:
            return Err(f"{op} exception for episode {episode_id}: {exc}")

    async def update_description(
        self, episode_id: str, description: str, meta_description: Optional[str] = None
    ) -> Result[None]:
        values: dict[str, Any] = {"description": description}
        if meta_description is not None:
            values["meta_description"] = meta_description
        return await self._update(episode_id, values, "update_description")

    async def update_summary(self, episode_id: str, summary: str) -> Result[None]:
        return await self._update(episode_id, {"episode_summary": summary}, "update_summary")

    async def update_cities_visited(self, episode_id: str, cities: list[str]) -> Result[None]:
        return await self._update(episode_id, {"cities_visited": cities}, "update_cities_visited")

    async def update_meta_description(self, episode_id: str, meta_description: str) -> Result[None]:
        return await self._update(episode_id, {"meta_description": meta_description}, "update_meta_description")
