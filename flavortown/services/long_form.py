"""Long-form SEO content for restaurant pages (~700 words over five sections)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..clients.search import SearchClient, combine_search_results_compact
from ..clients.synthesis import SynthesisClient, SynthesisTier
from ..schemas.base import TokenUsage
from ..schemas.records import LongFormContent
from ..utils.logger import get_logger
from .sanitize import format_location, sanitize_for_prompt, sanitize_location, sanitize_restaurant_name

logger = get_logger(__name__)

LONG_FORM_MODEL = "gpt-4.1-mini"
SEARCH_CONTEXT_CHARS = 8000
MIN_CONTEXT_CHARS = 50
NO_EXISTING_DATA = "No existing data available."

LONG_FORM_SYSTEM_PROMPT = """You are an expert food writer creating engaging, SEO-optimized content for restaurant pages.

Write compelling, authentic content that tells the restaurant's story with specific details,
captures the experience of eating there, integrates Guy Fieri's visit naturally, and
connects the restaurant to its city or neighborhood.

Guidelines:
- Warm, enthusiastic but professional tone
- Use specific details from the search results (owner names, founding year, signature dishes)
- Each section adds unique value; do not repeat information across sections
- Avoid generic phrases like "must-try" or "hidden gem"
- If a restaurant is closed, write positively about its legacy

Word count targets:
- about_story: ~200 words (2-3 paragraphs)
- culinary_philosophy: ~150 words
- history_highlights: ~150 words
- why_visit: ~100 words
- city_context: ~100 words

Respond with ONLY valid JSON with the keys about_story, culinary_philosophy,
history_highlights, why_visit and city_context."""


@dataclass
class ExistingRestaurantData:
    description: Optional[str] = None
    guy_quote: Optional[str] = None
    segment_notes: Optional[str] = None
    cuisines: list[str] = field(default_factory=list)
    price_tier: Optional[str] = None
    status: Optional[str] = None


@dataclass
class LongFormResult:
    restaurant_id: str
    success: bool
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    content: Optional[LongFormContent] = None
    word_count: int = 0
    error: Optional[str] = None


def build_existing_data_context(data: ExistingRestaurantData | None) -> str:
    if data is None:
        return NO_EXISTING_DATA

    parts: list[str] = []
    if data.description:
        parts.append(f"Description: {data.description}")
    if data.guy_quote:
        parts.append(f'Guy Fieri Quote: "{data.guy_quote}"')
    if data.segment_notes:
        parts.append(f"Episode Segment Notes: {data.segment_notes}")
    if data.cuisines:
        parts.append(f"Cuisine Types: {', '.join(data.cuisines)}")
    if data.price_tier:
        parts.append(f"Price Tier: {data.price_tier}")
    if data.status:
        parts.append(f"Current Status: {data.status}")
    return "\n".join(parts) if parts else NO_EXISTING_DATA


def count_words(content: LongFormContent) -> int:
    return sum(len(text.split()) for text in content.model_dump().values())


class LongFormService:
    """Generates long-form sections. Expects a synthesis client configured for
    ``LONG_FORM_MODEL``; unlike listing enrichment, empty search context is a failure.
    """

    def __init__(self, search: SearchClient, synthesis: SynthesisClient) -> None:
        self._search = search
        self._synthesis = synthesis

    async def generate_long_form_content(
        self,
        restaurant_id: str,
        name: str,
        city: str,
        state: str | None = None,
        existing: ExistingRestaurantData | None = None,
    ) -> LongFormResult:
        safe_name = sanitize_restaurant_name(name)
        location = format_location(sanitize_location(city), sanitize_location(state) or None)

        response = await self._search.search_restaurant(name, city, state, restaurant_id)
        context = combine_search_results_compact([response], SEARCH_CONTEXT_CHARS)
        if len(context) < MIN_CONTEXT_CHARS:
            return LongFormResult(restaurant_id, success=False, error="No search results found")

        existing_context = sanitize_for_prompt(build_existing_data_context(existing), 2000)
        prompt = (
            f'Write long-form SEO content for "{safe_name}" in {location}.\n\n'
            f"EXISTING INFORMATION ABOUT THIS RESTAURANT:\n{existing_context}\n\n"
            f"SEARCH RESULTS:\n{context}\n\n"
            "Based on the information above, create engaging long-form content for each section.\n"
            "Make each section unique - don't repeat information across sections.\n\n"
            "Return ONLY JSON."
        )

        result = await self._synthesis.synthesize(
            SynthesisTier.CREATIVE,
            LONG_FORM_SYSTEM_PROMPT,
            prompt,
            LongFormContent,
            max_tokens=2000,
            temperature=0.7,
        )
        if not result.success or result.data is None:
            return LongFormResult(restaurant_id, success=False, tokens_used=result.usage, error=result.error)

        words = count_words(result.data)
        logger.info("Generated %d words of long-form content for %s", words, safe_name)
        return LongFormResult(
            restaurant_id,
            success=True,
            tokens_used=result.usage,
            content=result.data,
            word_count=words,
        )
