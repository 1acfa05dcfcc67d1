"""Open/closed status verification.

Google Places is authoritative when a place ID is known; search plus LLM
inference is the fallback whenever Places is missing or inconclusive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..clients.places import PlacesClient
from ..clients.search import SearchClient, SearchResponse, combine_search_results_compact
from ..clients.synthesis import SynthesisClient, SynthesisTier
from ..schemas.base import TokenUsage
from ..utils.logger import get_logger
from .sanitize import format_location, sanitize_location, sanitize_restaurant_name

logger = get_logger(__name__)

SEARCH_CONTEXT_CHARS = 6000
MIN_CONTEXT_CHARS = 50
PLACES_CONFIDENCE = 0.95
INCONCLUSIVE_CONFIDENCE = 0.3

GOOGLE_STATUS_MAP: dict[str, str] = {
    "OPERATIONAL": "open",
    "CLOSED_PERMANENTLY": "closed",
    "CLOSED_TEMPORARILY": "closed",
}

StatusSource = Literal["google_places", "tavily", "unknown"]


class RestaurantStatusVerdict(BaseModel):
    status: Literal["open", "closed", "unknown"]
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str


STATUS_SYSTEM_PROMPT = """You are a restaurant industry analyst verifying whether restaurants are currently open based on search results.

Guidelines:
- A restaurant is "closed" if there's clear evidence it shut down (permanent closure, news articles)
- A restaurant is "open" if there's recent activity (reviews within 6 months, recent social media)
- Mark as "unknown" if you can't find conclusive information in the search results
- Confidence: 0.9+ for clear evidence, 0.7-0.9 for likely, <0.7 for uncertain

Respond with ONLY valid JSON in this format:
{
  "status": "open" or "closed" or "unknown",
  "confidence": 0.0 to 1.0,
  "reason": "Brief explanation of findings"
}"""


@dataclass
class RestaurantStatusResult:
    restaurant_id: str
    restaurant_name: str
    status: str
    confidence: float
    reason: str
    source: StatusSource
    success: bool
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    error: Optional[str] = None


class StatusVerificationService:
    """Decide whether a restaurant is open, closed or unknown.

    Args:
        search: Search client for the fallback path.
        synthesis: Synthesis client for the fallback path.
        places: Optional Places client; None skips the Places check.
    """

    def __init__(
        self,
        search: SearchClient,
        synthesis: SynthesisClient,
        places: PlacesClient | None = None,
    ) -> None:
        self._search = search
        self._synthesis = synthesis
        self._places = places

    async def verify_status(
        self,
        restaurant_id: str,
        name: str,
        city: str,
        state: str | None = None,
        google_place_id: str | None = None,
    ) -> RestaurantStatusResult:
        if google_place_id and self._places is not None:
            places_result = await self._verify_via_places(restaurant_id, name, google_place_id)
            if places_result.status != "unknown":
                return places_result

        return await self._verify_via_search(restaurant_id, name, city, state)

    async def _verify_via_places(self, restaurant_id: str, name: str, place_id: str) -> RestaurantStatusResult:
        try:
            details = await self._places.get_place_details(place_id)
        except Exception as exc:
            logger.warning("Google Places lookup failed for %s: %s", name, exc)
            return RestaurantStatusResult(
                restaurant_id, name, "unknown", 0.0, f"Google Places error: {exc}",
                source="google_places", success=False, error=str(exc),
            )

        if details is None:
            return RestaurantStatusResult(
                restaurant_id, name, "unknown", INCONCLUSIVE_CONFIDENCE, "Google Place ID not found",
                source="google_places", success=True,
            )

        business_status = details.business_status
        status = GOOGLE_STATUS_MAP.get(business_status or "", "unknown")
        confidence = PLACES_CONFIDENCE if status != "unknown" else INCONCLUSIVE_CONFIDENCE
        reason = f"Google Places: {business_status}" if business_status else "No business status from Google"
        logger.info("Google Places status for %s: %s", name, business_status)
        return RestaurantStatusResult(
            restaurant_id, name, status, confidence, reason, source="google_places", success=True,
        )

    async def _verify_via_search(
        self, restaurant_id: str, name: str, city: str, state: str | None
    ) -> RestaurantStatusResult:
        response = await self._search.search_status(name, city, state, restaurant_id)
        return await self.verify_status_from_cache(restaurant_id, name, city, response, state)

    async def verify_status_from_cache(
        self,
        restaurant_id: str,
        name: str,
        city: str,
        search_response: SearchResponse,
        state: str | None = None,
    ) -> RestaurantStatusResult:
        """Infer status from an already-fetched search response."""
        context = combine_search_results_compact([search_response], SEARCH_CONTEXT_CHARS)
        if len(context) < MIN_CONTEXT_CHARS:
            return RestaurantStatusResult(
                restaurant_id, name, "unknown", INCONCLUSIVE_CONFIDENCE, "No search results found",
                source="tavily", success=True,
            )

        safe_name = sanitize_restaurant_name(name)
        location = format_location(sanitize_location(city), sanitize_location(state) or None)
        prompt = (
            f'Verify if "{safe_name}" in {location} is currently open.\n\n'
            f"SEARCH RESULTS:\n{context}\n\n"
            "Based on the search results above, determine:\n"
            "- Is the restaurant open, closed, or unknown?\n"
            "- How confident are you? (0.0 to 1.0)\n"
            "- What evidence supports this?\n\n"
            "Return ONLY JSON."
        )

        result = await self._synthesis.synthesize(
            SynthesisTier.CREATIVE,
            STATUS_SYSTEM_PROMPT,
            prompt,
            RestaurantStatusVerdict,
            max_tokens=1000,
            temperature=0.2,
        )
        if not result.success or result.data is None:
            return RestaurantStatusResult(
                restaurant_id, name, "unknown", 0.0, f"Synthesis error: {result.error}",
                source="tavily", success=False, tokens_used=result.usage, error=result.error,
            )

        verdict = result.data
        return RestaurantStatusResult(
            restaurant_id,
            name,
            verdict.status,
            verdict.confidence,
            verdict.reason,
            source="tavily",
            success=True,
            tokens_used=result.usage,
        )
