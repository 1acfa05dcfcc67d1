"""Google Places (v1) client: text search, details, photos, fuzzy matching.

Every billable call adds its SKU price to a running total. The total is
advisory bookkeeping for reports; no budget is enforced here.
"""

from __future__ import annotations

import asyncio
import random
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from ..core.exceptions import PlacesAPIError
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

PLACES_API_BASE = "https://places.googleapis.com/v1"

SKU_COSTS: dict[str, float] = {
    "text_search": 0.032,
    "place_details": 0.017,
    "place_photo": 0.007,
}

MATCH_THRESHOLD = 0.8
MIN_MATCH_CONFIDENCE = 0.5

_TEXT_SEARCH_FIELDS = ",".join([
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.rating",
    "places.userRatingCount",
])

_DETAIL_FIELDS = ",".join([
    "id",
    "displayName",
    "formattedAddress",
    "rating",
    "userRatingCount",
    "websiteUri",
    "businessStatus",
    "photos",
    "location",
])

_QUOTES = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class PlaceCandidate:
    place_id: str
    name: str
    formatted_address: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None


@dataclass
class PlacePhoto:
    name: str
    width_px: Optional[int] = None
    height_px: Optional[int] = None


@dataclass
class PlaceDetails:
    place_id: str
    name: str
    formatted_address: Optional[str] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    website_uri: Optional[str] = None
    business_status: Optional[str] = None
    photos: list[PlacePhoto] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class PlaceMatch:
    place_id: Optional[str]
    confidence: float
    matched_name: Optional[str] = None


def normalize_for_comparison(name: str) -> str:
    text = name.lower().translate(_QUOTES).replace("&", "and")
    text = _NON_ALNUM.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def name_similarity(a: str, b: str) -> float:
    """Score two normalized names: exact 1.0, containment 0.9, else word Jaccard."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    if a in b or b in a:
        return 0.9
    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


class PlacesClient:
    """Async client for the Places API.

    Args:
        api_key: Google Places API key.
        max_retries: Retries after the first failed request.
        retry_base_delay: Base seconds for exponential backoff.
        http_client: Pre-built ``httpx.AsyncClient`` (tests pass a mock transport).
    """

    def __init__(
        self,
        api_key: str,
        *,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Google Places API key is required")
        self._api_key = api_key
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._http = http_client or httpx.AsyncClient(base_url=PLACES_API_BASE, timeout=timeout)
        self._total_cost = 0.0

    @property
    def total_cost(self) -> float:
        return self._total_cost

    def reset_cost(self) -> None:
        self._total_cost = 0.0

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _with_retry(self, fn: Callable[[], Awaitable[T]], label: str) -> T:
        last_error: BaseException | None = None
        for attempt in range(self._max_retries + 1):
            try:
                return await fn()
            except (httpx.HTTPError, PlacesAPIError) as exc:
                last_error = exc
                if attempt < self._max_retries:
                    delay = self._retry_base_delay * (2 ** attempt)
                    delay += random.uniform(0, delay * 0.25)
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                        label, attempt + 1, self._max_retries + 1, delay, exc,
                    )
                    await asyncio.sleep(delay)

        if isinstance(last_error, PlacesAPIError):
            raise last_error
        raise PlacesAPIError(f"{label} failed: {last_error}") from last_error

    def _headers(self, field_mask: str) -> dict[str, str]:
        return {"X-Goog-Api-Key": self._api_key, "X-Goog-FieldMask": field_mask}

    @staticmethod
    def _decode(response: httpx.Response, entity_id: str | None = None) -> dict[str, Any]:
        try:
            return response.json()
        except ValueError as exc:
            raise PlacesAPIError(
                f"Malformed Google Places response: {exc}",
                entity_id=entity_id,
                status_code=response.status_code,
            ) from exc

    async def text_search(self, query: str, max_results: int = 3) -> list[PlaceCandidate]:
        async def _request() -> dict[str, Any]:
            response = await self._http.post(
                "/places:searchText",
                json={"textQuery": query, "maxResultCount": max_results},
                headers=self._headers(_TEXT_SEARCH_FIELDS),
            )
            if not response.is_success:
                raise PlacesAPIError(
                    f"Google Places API error {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )
            return self._decode(response)

        payload = await self._with_retry(_request, "Google Places Text Search")
        self._total_cost += SKU_COSTS["text_search"]

        return [
            PlaceCandidate(
                place_id=place["id"],
                name=(place.get("displayName") or {}).get("text", ""),
                formatted_address=place.get("formattedAddress"),
                rating=place.get("rating"),
                user_ratings_total=place.get("userRatingCount"),
            )
            for place in payload.get("places") or []
        ]

    async def find_place_id(self, name: str, city: str, state: str | None = None) -> PlaceMatch:
        """Best-effort match of a restaurant to a place ID.

        Returns the first candidate scoring at least ``MATCH_THRESHOLD``,
        otherwise the top-ranked candidate with its own (possibly low) score.
        """
        query = f"{name} {city} {state}" if state else f"{name} {city}"
        candidates = await self.text_search(query, 3)
        if not candidates:
            return PlaceMatch(place_id=None, confidence=0.0)

        target = normalize_for_comparison(name)
        for candidate in candidates:
            score = name_similarity(target, normalize_for_comparison(candidate.name))
            if score >= MATCH_THRESHOLD:
                return PlaceMatch(candidate.place_id, score, candidate.name)

        best = candidates[0]
        return PlaceMatch(
            best.place_id,
            name_similarity(target, normalize_for_comparison(best.name)),
            best.name,
        )

    async def get_place_details(self, place_id: str) -> PlaceDetails | None:
        """Fetch details for *place_id*. A 404 returns None."""

        async def _request() -> dict[str, Any] | None:
            response = await self._http.get(f"/places/{place_id}", headers=self._headers(_DETAIL_FIELDS))
            if response.status_code == 404:
                return None
            if not response.is_success:
                raise PlacesAPIError(
                    f"Google Places API error {response.status_code}: {response.text}",
                    entity_id=place_id,
                    status_code=response.status_code,
                )
            return self._decode(response, place_id)

        payload = await self._with_retry(_request, "Google Places Details")
        if payload is None:
            return None
        self._total_cost += SKU_COSTS["place_details"]

        location = payload.get("location") or {}
        return PlaceDetails(
            place_id=payload.get("id", place_id),
            name=(payload.get("displayName") or {}).get("text", ""),
            formatted_address=payload.get("formattedAddress"),
            rating=payload.get("rating"),
            user_ratings_total=payload.get("userRatingCount"),
            website_uri=payload.get("websiteUri"),
            business_status=payload.get("businessStatus"),
            photos=[
                PlacePhoto(
                    name=photo.get("name", ""),
                    width_px=photo.get("widthPx"),
                    height_px=photo.get("heightPx"),
                )
                for photo in payload.get("photos") or []
            ],
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
        )

    async def get_photo(self, photo_name: str, max_width: int = 800) -> bytes | None:
        """Download a photo by resource name. Failures are logged and return None."""

        async def _request() -> bytes:
            response = await self._http.get(
                f"/{photo_name}/media",
                params={"maxWidthPx": max_width, "key": self._api_key},
                follow_redirects=True,
            )
            if not response.is_success:
                raise PlacesAPIError(
                    f"Photo fetch failed: {response.status_code}",
                    status_code=response.status_code,
                )
            return response.content

        try:
            content = await self._with_retry(_request, "Google Places Photo")
        except PlacesAPIError as exc:
            logger.error("Failed to fetch photo %s: %s", photo_name, exc)
            return None

        self._total_cost += SKU_COSTS["place_photo"]
        return content
