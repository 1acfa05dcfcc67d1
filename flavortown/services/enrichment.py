"""Restaurant content enrichment: description, cuisines, price tier, quote."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..clients.search import SearchClient, combine_search_results_compact
from ..clients.synthesis import SynthesisClient, SynthesisTier
from ..schemas.base import TokenUsage
from ..schemas.records import RestaurantEnrichmentData
from ..utils.logger import get_logger
from .sanitize import format_location, sanitize_location, sanitize_restaurant_name, slugify

logger = get_logger(__name__)

SEARCH_CONTEXT_CHARS = 8000
MIN_CONTEXT_CHARS = 50
NO_RESULTS = "No search results found"


class RestaurantEnrichment(BaseModel):
    description: str = Field(description="2-3 sentence description of the restaurant")
    cuisines: list[str] = Field(description='Cuisine types like ["American", "BBQ"]')
    price_tier: Literal["$", "$$", "$$$", "$$$$"]
    guy_quote: Optional[str] = Field(default=None, description="Memorable quote from Guy Fieri's visit")


ENRICHMENT_SYSTEM_PROMPT = """You are a restaurant industry expert analyzing information about restaurants featured on Diners, Drive-Ins and Dives.

Guidelines:
- Write descriptions that capture the restaurant's unique character and cuisine in 2-3 sentences
- Extract specific cuisine types (e.g., ["American", "BBQ"], ["Mexican"], ["Italian", "Pizza"])
- Determine price tier based on context: $ (under $10), $$ ($10-20), $$$ ($20-35), $$$$ ($35+)
- If Guy Fieri's visit is mentioned, extract the most memorable quote from him
- Set guy_quote to null if no specific quote is found
- Be specific and accurate based on the search results provided

Respond with ONLY valid JSON in this format:
{
  "description": "2-3 sentence description",
  "cuisines": ["cuisine1", "cuisine2"],
  "price_tier": "$" | "$$" | "$$$" | "$$$$",
  "guy_quote": "quote text" or null
}"""


@dataclass
class RestaurantEnrichmentResult:
    restaurant_id: str
    success: bool
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    description: Optional[str] = None
    cuisines: list[str] = field(default_factory=list)
    price_tier: Optional[str] = None
    guy_quote: Optional[str] = None
    error: Optional[str] = None

    def to_enrichment_data(self) -> RestaurantEnrichmentData:
        return RestaurantEnrichmentData(
            description=self.description,
            cuisine_tags=[slugify(c) for c in self.cuisines if slugify(c)],
            price_tier=self.price_tier,
            guy_quote=self.guy_quote,
        )


class RestaurantEnrichmentService:
    """Search for a restaurant and synthesize structured listing content.

    Search transport errors propagate; synthesis failures come back as
    ``success=False``. Too little search context is a successful call with
    an empty payload.
    """

    def __init__(self, search: SearchClient, synthesis: SynthesisClient) -> None:
        self._search = search
        self._synthesis = synthesis

    async def enrich_restaurant(
        self,
        restaurant_id: str,
        name: str,
        city: str,
        state: str | None = None,
        episode_title: str | None = None,
    ) -> RestaurantEnrichmentResult:
        safe_name = sanitize_restaurant_name(name)
        location = format_location(sanitize_location(city), sanitize_location(state) or None)
        logger.info("Enriching %s (%s)", safe_name, location)

        response = await self._search.search_restaurant(name, city, state, restaurant_id)
        context = combine_search_results_compact([response], SEARCH_CONTEXT_CHARS)
        if len(context) < MIN_CONTEXT_CHARS:
            logger.warning("No search results for %s", safe_name)
            return RestaurantEnrichmentResult(restaurant_id, success=True, error=NO_RESULTS)

        safe_episode = sanitize_location(episode_title)
        episode_context = f' (featured in episode "{safe_episode}")' if safe_episode else ""
        prompt = (
            f'Analyze information about "{safe_name}" in {location}{episode_context}.\n\n'
            f"SEARCH RESULTS:\n{context}\n\n"
            "Based on the search results above, extract:\n"
            "- A compelling 2-3 sentence description\n"
            "- The cuisine types (as an array)\n"
            "- The price tier\n"
            "- Any memorable quote from Guy Fieri's visit (or null)\n\n"
            "Return ONLY JSON."
        )

        result = await self._synthesis.synthesize(
            SynthesisTier.CREATIVE,
            ENRICHMENT_SYSTEM_PROMPT,
            prompt,
            RestaurantEnrichment,
            max_tokens=1500,
            temperature=0.3,
        )
        if not result.success or result.data is None:
            return RestaurantEnrichmentResult(
                restaurant_id, success=False, tokens_used=result.usage, error=result.error,
            )

        data = result.data
        logger.info("Enriched %s (%s, %s)", safe_name, ", ".join(data.cuisines), data.price_tier)
        return RestaurantEnrichmentResult(
            restaurant_id,
            success=True,
            tokens_used=result.usage,
            description=data.description,
            cuisines=list(data.cuisines),
            price_tier=data.price_tier,
            guy_quote=data.guy_quote,
        )
