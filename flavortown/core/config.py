"""
Unified configuration for the flavortown enrichment engine.

Consolidates provider keys, model choices, rate limits, caching and logging
into one dataclass with sensible defaults. ``from_env`` reads the same
variables the site's ``.env.local`` already defines.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EnrichmentConfig:
    """
    Configuration for clients, services and workflows.

    Every field has a default so tests and scripts can construct a config
    with only the values they care about.
    """

    # === Provider credentials ===
    openai_api_key: Optional[str] = None
    """OpenAI API key for the primary (remote) model"""

    tavily_api_key: Optional[str] = None
    """Tavily API key for web search"""

    google_places_api_key: Optional[str] = None
    """Google Places API key (None disables Places lookups)"""

    supabase_url: Optional[str] = None
    """Supabase project URL"""

    supabase_key: Optional[str] = None
    """Supabase service-role key"""

    # === Synthesis ===
    accuracy_model: str = "gpt-4o-mini"
    """Primary model used for the accuracy tier and as fallback"""

    creative_model: str = "qwen3-8b"
    """Local model preferred by the creative tier when reachable"""

    local_url: str = "http://localhost:1234"
    """Base URL of the local OpenAI-compatible server (LM Studio)"""

    skip_local: bool = True
    """Never probe or use the local model"""

    flex_tier: bool = True
    """Request the discounted flex service tier for primary calls"""

    llm_timeout: float = 60.0
    """Per-request timeout for completion calls in seconds"""

    # === Rate limiting ===
    search_interval: float = 60.0
    search_interval_cap: int = 900
    search_concurrency: int = 5
    llm_interval: float = 1.0
    llm_interval_cap: int = 50
    llm_concurrency: int = 10

    # === Caching ===
    cache_dir: str = ".flavortown"
    """Directory for the local SQLite search cache"""

    use_remote_cache: bool = False
    """Store search results in the Supabase ``cache`` table instead of SQLite"""

    # === Logging ===
    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"""

    log_dir: Optional[str] = None
    """Directory for log files (None = no file logging)"""

    enable_progress_bar: bool = True
    """Show tqdm progress for batched workflows"""

    # === Validation ===
    def __post_init__(self):
        """Validate configuration values after initialization."""
        if self.llm_timeout <= 0:
            raise ValueError(f"llm_timeout must be positive, got {self.llm_timeout}")

        for name in ("search_interval", "llm_interval"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        for name in ("search_interval_cap", "search_concurrency", "llm_interval_cap", "llm_concurrency"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"log_level must be a standard logging level, got {self.log_level}")

    @property
    def has_places(self) -> bool:
        return bool(self.google_places_api_key)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env.local", **overrides) -> EnrichmentConfig:
        """Build a config from environment variables (and an optional dotenv file)."""
        if env_file:
            load_dotenv(env_file)
        load_dotenv()

        values = dict(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            tavily_api_key=os.getenv("TAVILY_API_KEY"),
            google_places_api_key=os.getenv("GOOGLE_PLACES_API_KEY") or None,
            supabase_url=os.getenv("NEXT_PUBLIC_SUPABASE_URL") or os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
            local_url=os.getenv("LM_STUDIO_URL", "http://localhost:1234"),
            skip_local=_env_bool(os.getenv("FLAVORTOWN_SKIP_LOCAL"), True),
            use_remote_cache=_env_bool(os.getenv("FLAVORTOWN_REMOTE_CACHE"), False),
            log_level=os.getenv("FLAVORTOWN_LOG_LEVEL", "INFO"),
            log_dir=os.getenv("FLAVORTOWN_LOG_DIR") or None,
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def for_development(cls, **overrides) -> EnrichmentConfig:
        """Configuration for local runs: local model enabled, verbose logs."""
        values = dict(
            skip_local=False,
            log_level="DEBUG",
            search_concurrency=2,
            llm_concurrency=4,
        )
        values.update(overrides)
        return cls(**values)
