"""Process-level wiring.

``EnrichmentApp`` builds every client, repository and service once from an
``EnrichmentConfig`` and hands out workflows that share them. Any collaborator
can be injected through the constructor, which is how tests swap in fakes.
"""

from __future__ import annotations

from typing import Any, Optional

from supabase import create_client

from .clients.places import PlacesClient
from .clients.search import SearchClient
from .clients.synthesis import SynthesisClient, SynthesisSettings
from .core.cache import SearchCache, SearchCacheStore
from .core.config import EnrichmentConfig
from .core.exceptions import ConfigurationError
from .core.hooks import WorkflowHooks
from .core.rate_limiter import RateLimiters
from .providers.base import LLMClient
from .providers.openai import OpenAIClient
from .repositories import CityRepository, EpisodeRepository, RestaurantRepository, SupabaseSearchCache
from .services import (
    EpisodeDescriptionService,
    LongFormService,
    RestaurantEnrichmentService,
    StatusVerificationService,
)
from .services.long_form import LONG_FORM_MODEL
from .utils.logger import get_logger
from .workflows import (
    ManualRestaurantAdditionWorkflow,
    RefreshStaleRestaurantWorkflow,
    RestaurantStatusSweepWorkflow,
    WorkflowConfig,
)

logger = get_logger(__name__)

LOCAL_API_KEY = "not-needed"


class EnrichmentApp:
    """Owns the shared limiters, cache and clients for one process.

    Args:
        config: Keys, models and limits.
        supabase: Pre-built Supabase client. Built lazily from the config otherwise.
        primary_llm: Client for the remote primary model.
        local_llm: Client for the local model server.
        cache: Search cache store. Defaults to SQLite, or the Supabase
            ``cache`` table when ``use_remote_cache`` is set.
        places: Places client. Built when a Places key is configured.
    """

    def __init__(
        self,
        config: EnrichmentConfig,
        *,
        supabase: Any = None,
        primary_llm: LLMClient | None = None,
        local_llm: LLMClient | None = None,
        cache: SearchCacheStore | None = None,
        places: PlacesClient | None = None,
        tavily_client: Any = None,
    ) -> None:
        self.config = config
        self.limiters = RateLimiters.from_config(config)
        self._supabase = supabase

        self.primary_llm = primary_llm or OpenAIClient(
            api_key=config.openai_api_key,
            timeout=config.llm_timeout,
            flex=config.flex_tier,
        )
        if local_llm is None and not config.skip_local:
            local_llm = OpenAIClient(
                api_key=LOCAL_API_KEY,
                base_url=f"{config.local_url.rstrip('/')}/v1",
                timeout=config.llm_timeout,
            )
        self.local_llm = local_llm

        if cache is None:
            cache = SupabaseSearchCache(self.supabase) if config.use_remote_cache else SearchCache(config.cache_dir)
        self.cache = cache

        self.synthesis = self._synthesis_client(config.accuracy_model)
        self.long_form_synthesis = self._synthesis_client(LONG_FORM_MODEL)

        self.search = SearchClient(
            config.tavily_api_key,
            cache=self.cache,
            limiter=self.limiters.search,
            client=tavily_client,
        )

        if places is None and config.has_places:
            places = PlacesClient(config.google_places_api_key)
        self.places = places

        self.enrichment = RestaurantEnrichmentService(self.search, self.synthesis)
        self.status = StatusVerificationService(self.search, self.synthesis, self.places)
        self.episode_descriptions = EpisodeDescriptionService(self.synthesis)
        self.long_form = LongFormService(self.search, self.long_form_synthesis)

        self._restaurants: Optional[RestaurantRepository] = None
        self._episodes: Optional[EpisodeRepository] = None
        self._cities: Optional[CityRepository] = None

    def _synthesis_client(self, accuracy_model: str) -> SynthesisClient:
        return SynthesisClient(
            self.primary_llm,
            local=self.local_llm,
            settings=SynthesisSettings(
                accuracy_model=accuracy_model,
                creative_model=self.config.creative_model,
                local_url=self.config.local_url,
                skip_local=self.config.skip_local,
            ),
            limiter=self.limiters.llm,
        )

    # -- store -------------------------------------------------------------

    @property
    def supabase(self) -> Any:
        if self._supabase is None:
            if not self.config.has_supabase:
                raise ConfigurationError(
                    "Supabase URL and service-role key are required "
                    "(NEXT_PUBLIC_SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)"
                )
            self._supabase = create_client(self.config.supabase_url, self.config.supabase_key)
        return self._supabase

    @property
    def restaurants(self) -> RestaurantRepository:
        if self._restaurants is None:
            self._restaurants = RestaurantRepository(self.supabase)
        return self._restaurants

    @property
    def episodes(self) -> EpisodeRepository:
        if self._episodes is None:
            self._episodes = EpisodeRepository(self.supabase)
        return self._episodes

    @property
    def cities(self) -> CityRepository:
        if self._cities is None:
            self._cities = CityRepository(self.supabase)
        return self._cities

    # -- workflows ---------------------------------------------------------

    def manual_addition_workflow(self, hooks: WorkflowHooks | None = None) -> ManualRestaurantAdditionWorkflow:
        return ManualRestaurantAdditionWorkflow(
            self.restaurants, self.enrichment, self.status, self.places, hooks=hooks,
        )

    def refresh_workflow(self, hooks: WorkflowHooks | None = None) -> RefreshStaleRestaurantWorkflow:
        return RefreshStaleRestaurantWorkflow(
            self.restaurants, self.enrichment, self.status, hooks=hooks,
        )

    def status_sweep_workflow(self, hooks: WorkflowHooks | None = None) -> RestaurantStatusSweepWorkflow:
        return RestaurantStatusSweepWorkflow(
            self.restaurants,
            self.status,
            config=WorkflowConfig(
                workflow_name="restaurant-status-sweep",
                max_cost_usd=10.0,
                timeout_seconds=1800,
                show_progress=self.config.enable_progress_bar,
            ),
            hooks=hooks,
        )

    async def aclose(self) -> None:
        if self.places is not None:
            await self.places.aclose()
        if isinstance(self.cache, SearchCache):
            self.cache.close()
