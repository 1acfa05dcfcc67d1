"""Schema types for flavortown."""

from .base import TokenUsage
from .records import (
    CityRecord,
    CityRestaurantRecord,
    EpisodeRecord,
    EpisodeRestaurantRecord,
    LongFormCandidate,
    LongFormContent,
    RestaurantEnrichmentData,
    RestaurantRecord,
    StatusCriteria,
)
from .workflow import (
    CostEstimate,
    StepStatus,
    TotalCost,
    ValidationResult,
    WorkflowError,
    WorkflowResult,
    WorkflowStatus,
    WorkflowStep,
)

__all__ = [
    "TokenUsage",
    "CityRecord",
    "CityRestaurantRecord",
    "EpisodeRecord",
    "EpisodeRestaurantRecord",
    "LongFormCandidate",
    "LongFormContent",
    "RestaurantEnrichmentData",
    "RestaurantRecord",
    "StatusCriteria",
    "CostEstimate",
    "StepStatus",
    "TotalCost",
    "ValidationResult",
    "WorkflowError",
    "WorkflowResult",
    "WorkflowStatus",
    "WorkflowStep",
]
