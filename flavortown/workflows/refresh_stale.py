"""Re-enrich and/or re-verify an existing restaurant."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core.hooks import WorkflowHooks
from ..core.pricing import TokenTracker
from ..repositories import RestaurantRepository
from ..schemas.records import RestaurantStatus
from ..schemas.workflow import CostEstimate, ValidationResult
from ..services.enrichment import RestaurantEnrichmentService
from ..services.status import StatusVerificationService
from .base import WorkflowConfig
from .restaurant_base import RestaurantWorkflow, token_estimate

UUID_LENGTH = 36

DATA_TOKENS, DATA_MAX_TOKENS = 1500, 2500
STATUS_TOKENS, STATUS_MAX_TOKENS = 800, 1200


@dataclass(frozen=True)
class RefreshScope:
    data: bool = False
    status: bool = False


@dataclass
class RefreshInput:
    restaurant_id: str
    scope: RefreshScope = field(default_factory=lambda: RefreshScope(data=True, status=True))
    dry_run: bool = False


@dataclass
class RefreshOutput:
    restaurant_id: str
    restaurant_name: str = ""
    data_refreshed: bool = False
    status_refreshed: bool = False
    new_status: Optional[RestaurantStatus] = None
    status_confidence: Optional[float] = None
    last_enriched_at: Optional[datetime] = None


class RefreshStaleRestaurantWorkflow(RestaurantWorkflow[RefreshInput, RefreshOutput]):
    """Refresh listing data, status, or both for one restaurant.

    Name and location come from the stored record rather than the input.
    """

    def __init__(
        self,
        repository: RestaurantRepository,
        enrichment: RestaurantEnrichmentService,
        status: StatusVerificationService,
        *,
        config: WorkflowConfig | None = None,
        tracker: TokenTracker | None = None,
        hooks: WorkflowHooks | None = None,
    ) -> None:
        super().__init__(
            config or WorkflowConfig(
                workflow_name="refresh-stale-restaurant",
                max_cost_usd=5.0,
                timeout_seconds=600,
            ),
            repository,
            enrichment,
            status,
            tracker=tracker,
            hooks=hooks,
        )

    def validate(self, input: RefreshInput) -> ValidationResult:
        errors: list[str] = []
        if not input.restaurant_id or len(input.restaurant_id) != UUID_LENGTH:
            errors.append("Invalid restaurant ID (must be UUID)")
        if not input.scope.data and not input.scope.status:
            errors.append("Must specify at least one scope (data or status)")
        return ValidationResult(valid=not errors, errors=errors)

    async def estimate_cost(self, input: RefreshInput) -> CostEstimate:
        estimated = max_tokens = 0
        if input.scope.data:
            estimated += DATA_TOKENS
            max_tokens += DATA_MAX_TOKENS
        if input.scope.status:
            estimated += STATUS_TOKENS
            max_tokens += STATUS_MAX_TOKENS
        return token_estimate(estimated, max_tokens)

    async def execute_steps(self, input: RefreshInput) -> RefreshOutput:
        output = RefreshOutput(restaurant_id=input.restaurant_id)

        record = await self._fetch_step("Fetch restaurant details", input.restaurant_id)
        output.restaurant_name = record.name
        output.last_enriched_at = record.last_enriched_at
        city = record.city or ""

        if input.scope.data:
            enrich = await self._enrich_step(
                "Re-enrich restaurant data",
                input.restaurant_id,
                record.name,
                city,
                record.state,
                dry_run=input.dry_run,
            )
            output.data_refreshed = enrich.persisted

        if input.scope.status:
            status = await self._status_step(
                "Re-verify restaurant status",
                input.restaurant_id,
                record.name,
                city,
                record.state,
                record.google_place_id,
                dry_run=input.dry_run,
            )
            if status.result is not None:
                output.new_status = status.result.status
                output.status_confidence = status.result.confidence
            output.status_refreshed = status.persisted

        if not input.dry_run and output.data_refreshed:
            await self._timestamp_step(input.restaurant_id)

        return output
