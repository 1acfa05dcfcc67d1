"""Single-purpose enrichment services built on the provider clients."""

from .enrichment import RestaurantEnrichmentResult, RestaurantEnrichmentService
from .episode_description import EpisodeDescriptionResult, EpisodeDescriptionService
from .long_form import ExistingRestaurantData, LongFormResult, LongFormService
from .status import RestaurantStatusResult, StatusVerificationService

__all__ = [
    "RestaurantEnrichmentResult",
    "RestaurantEnrichmentService",
    "EpisodeDescriptionResult",
    "EpisodeDescriptionService",
    "ExistingRestaurantData",
    "LongFormResult",
    "LongFormService",
    "RestaurantStatusResult",
    "StatusVerificationService",
]
