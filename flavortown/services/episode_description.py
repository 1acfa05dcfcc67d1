"""SEO meta descriptions for episodes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field

from ..clients.synthesis import SynthesisClient, SynthesisTier
from ..schemas.base import TokenUsage
from .sanitize import sanitize_for_prompt, sanitize_restaurant_name

META_MIN_CHARS = 140
META_MAX_CHARS = 160


class EpisodeDescription(BaseModel):
    meta_description: str = Field(min_length=META_MIN_CHARS, max_length=META_MAX_CHARS)


EPISODE_DESCRIPTION_SYSTEM_PROMPT = """You are an SEO expert writing meta descriptions for Diners, Drive-Ins and Dives episodes.

Guidelines:
- Create compelling meta descriptions between 155-160 characters
- Include the episode number (e.g., "S12E5")
- Mention featured restaurants by name
- Use action words and engaging language
- Focus on what makes the episode unique

Respond with ONLY valid JSON in this format:
{
  "meta_description": "155-160 character SEO-optimized description"
}"""


@dataclass
class EpisodeDescriptionResult:
    episode_id: str
    success: bool
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    meta_description: Optional[str] = None
    error: Optional[str] = None


class EpisodeDescriptionService:
    def __init__(self, synthesis: SynthesisClient) -> None:
        self._synthesis = synthesis

    async def generate_episode_description(
        self,
        episode_id: str,
        season: int,
        episode_number: int,
        title: str,
        restaurant_names: list[str],
    ) -> EpisodeDescriptionResult:
        episode_code = f"S{season}E{episode_number}"
        names = [sanitize_restaurant_name(n) for n in restaurant_names if n]
        restaurant_list = ", ".join(names) if names else "featured restaurants"

        prompt = (
            "Create an SEO meta description for this Diners, Drive-Ins and Dives episode:\n\n"
            f'Episode: {episode_code} - "{sanitize_for_prompt(title)}"\n'
            f"Featured Restaurants: {restaurant_list}\n\n"
            "Requirements:\n"
            "- Exactly 155-160 characters\n"
            f"- Include episode code ({episode_code})\n"
            "- Mention restaurant names if space allows\n"
            "- Make it engaging and clickable\n\n"
            "Return ONLY JSON."
        )

        result = await self._synthesis.synthesize(
            SynthesisTier.CREATIVE,
            EPISODE_DESCRIPTION_SYSTEM_PROMPT,
            prompt,
            EpisodeDescription,
            max_tokens=500,
            temperature=0.4,
        )
        if not result.success or result.data is None:
            return EpisodeDescriptionResult(
                episode_id, success=False, tokens_used=result.usage, error=result.error,
            )
        return EpisodeDescriptionResult(
            episode_id,
            success=True,
            tokens_used=result.usage,
            meta_description=result.data.meta_description,
        )
