"""Row models for the tables the repositories read and write.

The store owns these rows; extra columns returned by a ``select("*")`` are
ignored so schema additions on the database side never break parsing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

RestaurantStatus = Literal["open", "closed", "unknown"]
EnrichmentStatus = Literal["pending", "in_progress", "completed", "failed"]
PriceTier = Literal["$", "$$", "$$$", "$$$$"]


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RestaurantRecord(_Row):
    """A restaurant as stored in the ``restaurants`` table."""

    id: str
    name: str
    slug: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    address: Optional[str] = None
    status: RestaurantStatus = "unknown"
    enrichment_status: EnrichmentStatus = "pending"
    last_enriched_at: Optional[datetime] = None
    last_verified: Optional[datetime] = None
    verification_source: Optional[str] = None
    description: Optional[str] = None
    price_tier: Optional[PriceTier] = None
    guy_quote: Optional[str] = None
    segment_notes: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    google_place_id: Optional[str] = None
    google_rating: Optional[float] = None
    google_review_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return value or "unknown"

    @field_validator("enrichment_status", mode="before")
    @classmethod
    def _default_enrichment_status(cls, value):
        return value or "pending"


class RestaurantEnrichmentData(BaseModel):
    """Fields written back by the enrichment step."""

    description: Optional[str] = None
    cuisine_tags: list[str] = Field(default_factory=list)
    price_tier: Optional[PriceTier] = None
    guy_quote: Optional[str] = None


class LongFormContent(BaseModel):
    about_story: str
    culinary_philosophy: str
    history_highlights: str
    why_visit: str
    city_context: str


class StatusCriteria(BaseModel):
    """Filters for selecting restaurants to re-verify."""

    not_verified_in_days: Optional[int] = Field(default=None, ge=0)
    status: Optional[RestaurantStatus] = None
    city: Optional[str] = None


class EpisodeRecord(_Row):
    id: str
    title: str
    season: Optional[int] = None
    episode_number: Optional[int] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    meta_description: Optional[str] = None
    episode_summary: Optional[str] = None
    cities_visited: Optional[list[str]] = None
    air_date: Optional[str] = None


class EpisodeRestaurantRecord(_Row):
    id: str
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    segment_order: Optional[int] = None


class CityRecord(_Row):
    id: str
    name: str
    state_id: Optional[str] = None
    state_name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    meta_description: Optional[str] = None
    restaurant_count: int = 0


class CityRestaurantRecord(_Row):
    id: str
    name: str
    slug: Optional[str] = None
    status: RestaurantStatus = "unknown"
    price_tier: Optional[PriceTier] = None


class LongFormCandidate(_Row):
    """A restaurant row with the existing content long-form generation builds on."""

    id: str
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    description: Optional[str] = None
    guy_quote: Optional[str] = None
    price_tier: Optional[PriceTier] = None
    status: RestaurantStatus = "unknown"
    segment_notes: Optional[str] = None
    cuisines: list[str] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return value or "unknown"
