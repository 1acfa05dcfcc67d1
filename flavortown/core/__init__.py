"""Core infrastructure: config, errors, pricing, rate limiting, caching, hooks."""

from .cache import CachedSearch, CacheStats, SearchCache, SearchCacheStore
from .config import EnrichmentConfig
from .exceptions import (
    ConfigurationError,
    EnrichmentError,
    PlacesAPIError,
    ProviderError,
    SearchError,
    StepFailedError,
    WorkflowTimeoutError,
)
from .hooks import WorkflowEndEvent, WorkflowHooks, WorkflowStartEvent
from .pricing import DEFAULT_MODEL, MODEL_PRICING, TokenTracker, estimate_token_cost, get_model_pricing
from .rate_limiter import RateLimiter, RateLimiters

__all__ = [
    "CachedSearch",
    "CacheStats",
    "SearchCache",
    "SearchCacheStore",
    "EnrichmentConfig",
    "ConfigurationError",
    "EnrichmentError",
    "PlacesAPIError",
    "ProviderError",
    "SearchError",
    "StepFailedError",
    "WorkflowTimeoutError",
    "WorkflowEndEvent",
    "WorkflowHooks",
    "WorkflowStartEvent",
    "DEFAULT_MODEL",
    "MODEL_PRICING",
    "TokenTracker",
    "estimate_token_cost",
    "get_model_pricing",
    "RateLimiter",
    "RateLimiters",
]
