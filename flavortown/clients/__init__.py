"""Provider clients: synthesis (LLM), web search and Google Places."""

from .places import PlaceDetails, PlaceMatch, PlacesClient, name_similarity, normalize_for_comparison
from .search import (
    SEARCH_TTL_DAYS,
    SearchClient,
    SearchHit,
    SearchResponse,
    combine_search_results,
    combine_search_results_compact,
    hash_query,
)
from .synthesis import (
    RetryPolicy,
    SynthesisClient,
    SynthesisResult,
    SynthesisSettings,
    SynthesisTier,
    extract_json_object,
    strip_reasoning,
)

__all__ = [
    "PlaceDetails",
    "PlaceMatch",
    "PlacesClient",
    "name_similarity",
    "normalize_for_comparison",
    "SEARCH_TTL_DAYS",
    "SearchClient",
    "SearchHit",
    "SearchResponse",
    "combine_search_results",
    "combine_search_results_compact",
    "hash_query",
    "RetryPolicy",
    "SynthesisClient",
    "SynthesisResult",
    "SynthesisSettings",
    "SynthesisTier",
    "extract_json_object",
    "strip_reasoning",
]
