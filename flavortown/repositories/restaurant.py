"""Data access for the ``restaurants`` table and its cuisine links."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..schemas.records import (
    LongFormCandidate,
    LongFormContent,
    RestaurantEnrichmentData,
    RestaurantRecord,
    RestaurantStatus,
    StatusCriteria,
)
from ..utils.logger import get_logger
from .base import Err, Ok, Result, SupabaseRepository, utc_now_iso

logger = get_logger(__name__)

STATUS_CHECK_COLUMNS = "id, name, city, state, status, google_place_id, last_verified"
LONG_FORM_COLUMNS = (
    "id, name, city, state, description, guy_quote, price_tier, status, long_form_enriched_at, "
    "restaurant_cuisines!left (cuisines!left (name)), "
    "restaurant_episodes!left (segment_notes)"
)


def _cutoff_iso(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


class RestaurantRepository(SupabaseRepository):
    """Typed reads and writes for restaurants. Never raises; returns ``Ok``/``Err``."""

    # -- reads -------------------------------------------------------------

    async def get_by_id(self, restaurant_id: str) -> Result[RestaurantRecord]:
        try:
            response = await self._execute(
                self.table("restaurants").select("*").eq("id", restaurant_id).limit(1)
            )
            rows = response.data or []
            if not rows:
                return Err(f"get_by_id failed for restaurant {restaurant_id}: not found")
            return Ok(RestaurantRecord.model_validate(rows[0]))
        except Exception as exc:
            return Err(f"get_by_id exception for restaurant {restaurant_id}: {exc}")

    async def get_bulk(self, restaurant_ids: list[str]) -> Result[list[RestaurantRecord]]:
        try:
            response = await self._execute(
                self.table("restaurants").select("*").in_("id", restaurant_ids)
            )
            return Ok([RestaurantRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"get_bulk exception for {len(restaurant_ids)} restaurants: {exc}")

    async def get_all_pending(self) -> Result[list[RestaurantRecord]]:
        try:
            response = await self._execute(
                self.table("restaurants")
                .select("*")
                .eq("enrichment_status", "pending")
                .order("created_at", desc=False)
            )
            return Ok([RestaurantRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"get_all_pending exception: {exc}")

    async def get_all_stale(self, days: int, limit: int | None = None) -> Result[list[RestaurantRecord]]:
        """Restaurants never enriched or last enriched more than *days* ago, oldest first."""
        try:
            cutoff = _cutoff_iso(days)
            query = (
                self.table("restaurants")
                .select("*")
                .or_(f"last_enriched_at.is.null,last_enriched_at.lt.{cutoff}")
                .order("last_enriched_at", desc=False, nullsfirst=True)
            )
            if limit is not None:
                query = query.limit(limit)
            response = await self._execute(query)
            return Ok([RestaurantRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"get_all_stale exception ({days} days): {exc}")

    def _apply_criteria(self, query: Any, criteria: StatusCriteria) -> Any:
        if criteria.status:
            query = query.eq("status", criteria.status)
        if criteria.city:
            query = query.eq("city", criteria.city)
        if criteria.not_verified_in_days:
            cutoff = _cutoff_iso(criteria.not_verified_in_days)
            query = query.or_(f"last_verified.is.null,last_verified.lt.{cutoff}")
        return query

    async def count_for_status_check(self, criteria: StatusCriteria) -> Result[int]:
        try:
            query = self._apply_criteria(
                self.table("restaurants").select("id", count="exact"), criteria
            )
            response = await self._execute(query)
            return Ok(response.count or 0)
        except Exception as exc:
            return Err(f"count_for_status_check exception: {exc}")

    async def find_for_status_check(
        self, criteria: StatusCriteria, limit: int | None = None
    ) -> Result[list[RestaurantRecord]]:
        """Restaurants matching *criteria*, least recently verified first."""
        try:
            query = self._apply_criteria(
                self.table("restaurants")
                .select(STATUS_CHECK_COLUMNS)
                .order("last_verified", desc=False, nullsfirst=True),
                criteria,
            )
            if limit is not None:
                query = query.limit(limit)
            response = await self._execute(query)
            return Ok([RestaurantRecord.model_validate(row) for row in response.data or []])
        except Exception as exc:
            return Err(f"find_for_status_check exception: {exc}")

    async def find_for_long_form(
        self, limit: int | None = None, include_enriched: bool = False
    ) -> Result[list[LongFormCandidate]]:
        """Public restaurants that still need long-form content, with their cuisines and segment notes."""
        try:
            query = self.table("restaurants").select(LONG_FORM_COLUMNS).eq("is_public", True)
            if not include_enriched:
                query = query.is_("long_form_enriched_at", "null")
            if limit is not None:
                query = query.limit(limit)
            response = await self._execute(query)

            candidates = []
            for row in response.data or []:
                cuisines = [
                    link["cuisines"]["name"]
                    for link in row.get("restaurant_cuisines") or []
                    if link.get("cuisines") and link["cuisines"].get("name")
                ]
                episodes = row.get("restaurant_episodes") or []
                segment_notes = episodes[0].get("segment_notes") if episodes else None
                candidates.append(LongFormCandidate.model_validate({
                    **row, "cuisines": cuisines, "segment_notes": segment_notes,
                }))
            return Ok(candidates)
        except Exception as exc:
            return Err(f"find_for_long_form exception: {exc}")

    # -- writes ------------------------------------------------------------

    async def update_enrichment_data(
        self, restaurant_id: str, data: RestaurantEnrichmentData
    ) -> Result[None]:
        """Write description, price tier and quote; relink cuisines when tags are given."""
        try:
            update: dict[str, Any] = {"updated_at": utc_now_iso()}
            if data.description is not None:
                update["description"] = data.description
            if data.price_tier is not None:
                update["price_tier"] = data.price_tier
            if data.guy_quote is not None:
                update["guy_quote"] = data.guy_quote

            await self._execute(self.table("restaurants").update(update).eq("id", restaurant_id))
        except Exception as exc:
            return Err(f"update_enrichment_data exception for restaurant {restaurant_id}: {exc}")

        if data.cuisine_tags:
            return await self.update_cuisines(restaurant_id, data.cuisine_tags)
        return Ok(None)

    async def update_cuisines(self, restaurant_id: str, cuisine_slugs: list[str]) -> Result[None]:
        try:
            response = await self._execute(
                self.table("cuisines").select("id, slug").in_("slug", cuisine_slugs)
            )
            cuisines = response.data or []
            if not cuisines:
                return Err(
                    f"update_cuisines failed for restaurant {restaurant_id}: "
                    f"no matching cuisines found for slugs [{', '.join(cuisine_slugs)}]"
                )

            await self._execute(
                self.table("restaurant_cuisines").delete().eq("restaurant_id", restaurant_id)
            )
            links = [{"restaurant_id": restaurant_id, "cuisine_id": row["id"]} for row in cuisines]
            await self._execute(self.table("restaurant_cuisines").insert(links))
            return Ok(None)
        except Exception as exc:
            return Err(f"update_cuisines exception for restaurant {restaurant_id}: {exc}")

    async def update_status(
        self, restaurant_id: str, status: RestaurantStatus, confidence: float, reason: str
    ) -> Result[None]:
        now = utc_now_iso()
        try:
            await self._execute(
                self.table("restaurants")
                .update({
                    "status": status,
                    "last_verified": now,
                    "verification_source": f"llm_confidence_{confidence:.2f}: {reason}",
                    "updated_at": now,
                })
                .eq("id", restaurant_id)
            )
            return Ok(None)
        except Exception as exc:
            return Err(f"update_status exception for restaurant {restaurant_id}: {exc}")

    async def update_google_place_id(
        self,
        restaurant_id: str,
        place_id: str,
        rating: Optional[float] = None,
        review_count: Optional[int] = None,
    ) -> Result[None]:
        update: dict[str, Any] = {"google_place_id": place_id, "updated_at": utc_now_iso()}
        if rating is not None:
            update["google_rating"] = rating
        if review_count is not None:
            update["google_review_count"] = review_count
        try:
            await self._execute(self.table("restaurants").update(update).eq("id", restaurant_id))
            return Ok(None)
        except Exception as exc:
            return Err(f"update_google_place_id exception for restaurant {restaurant_id}: {exc}")

    async def set_enrichment_timestamp(self, restaurant_id: str) -> Result[str]:
        """Mark enrichment completed now. Returns the timestamp written."""
        now = utc_now_iso()
        try:
            await self._execute(
                self.table("restaurants")
                .update({"enrichment_status": "completed", "last_enriched_at": now, "updated_at": now})
                .eq("id", restaurant_id)
            )
            return Ok(now)
        except Exception as exc:
            return Err(f"set_enrichment_timestamp exception for restaurant {restaurant_id}: {exc}")

    async def update_long_form_content(self, restaurant_id: str, content: LongFormContent) -> Result[None]:
        now = utc_now_iso()
        try:
            await self._execute(
                self.table("restaurants")
                .update({**content.model_dump(), "long_form_enriched_at": now, "updated_at": now})
                .eq("id", restaurant_id)
            )
            return Ok(None)
        except Exception as exc:
            return Err(f"update_long_form_content exception for restaurant {restaurant_id}: {exc}")
