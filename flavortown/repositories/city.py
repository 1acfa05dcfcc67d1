"""Data access for the ``cities`` table.

Cities store the full state name; two-letter codes are resolved through the
``states`` table before filtering.
"""

from __future__ import annotations

from ..schemas.records import CityRecord, CityRestaurantRecord
from .base import Err, Ok, Result, SupabaseRepository, utc_now_iso


class CityRepository(SupabaseRepository):

    async def _resolve_state_name(self, state: str) -> str:
        if len(state) != 2:
            return state
        response = await self._execute(
            self.table("states").select("name").eq("abbreviation", state.upper()).limit(1)
        )
        rows = response.data or []
        return rows[0]["name"] if rows else state

    async def get_by_name(self, city: str, state: str | None = None) -> Result[CityRecord]:
        try:
            query = self.table("cities").select("*").eq("name", city)
            if state:
                query = query.eq("state_name", await self._resolve_state_name(state))
            response = await self._execute(query.limit(1))
            rows = response.data or []
            if not rows:
                return Err(f"get_by_name failed for city {city}: not found")
            return Ok(CityRecord.model_validate(rows[0]))
        except Exception as exc:
            return Err(f"get_by_name exception for city {city}: {exc}")

    async def get_city_restaurants(self, city: str, state: str) -> Result[list[CityRestaurantRecord]]:
        """Public restaurants in a city, ordered by name."""
        try:
            state_name = await self._resolve_state_name(state)
            response = await self._execute(
                self.table("restaurants")
                .select("id, name, slug, address, status, price_tier")
                .eq("city", city)
                .eq("state", state_name)
                .eq("is_public", True)
                .order("name", desc=False)
            )
            return Ok([CityRestaurantRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"get_city_restaurants exception for {city}, {state}: {exc}")

    async def get_all_cities(self) -> Result[list[CityRecord]]:
        try:
            response = await self._execute(
                self.table("cities").select("*").order("restaurant_count", desc=True)
            )
            return Ok([CityRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"get_all_cities exception: {exc}")

    async def get_cities_by_state(self, state: str) -> Result[list[CityRecord]]:
        try:
            state_name = await self._resolve_state_name(state)
            response = await self._execute(
                self.table("cities")
                .select("*")
                .eq("state_name", state_name)
                .order("restaurant_count", desc=True)
            )
            return Ok([CityRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"get_cities_by_state exception for {state}: {exc}")

    async def update_description(self, city_id: str, description: str) -> Result[None]:
        try:
            await self._execute(
                self.table("cities")
                .update({"meta_description": description, "updated_at": utc_now_iso()})
                .eq("id", city_id)
            )
            return Ok(None)
        except Exception as exc:
            return Err(f"update_description exception for city {city_id}: {exc}")
