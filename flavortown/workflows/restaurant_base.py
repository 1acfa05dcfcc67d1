"""Steps shared by the single-restaurant workflows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional

from ..core.exceptions import StepFailedError
from ..core.hooks import WorkflowHooks
from ..core.pricing import DEFAULT_MODEL, TokenTracker, estimate_token_cost
from ..repositories import Err, RestaurantRepository
from ..schemas.records import RestaurantRecord
from ..schemas.workflow import CostEstimate
from ..services.enrichment import RestaurantEnrichmentResult, RestaurantEnrichmentService
from ..services.status import RestaurantStatusResult, StatusVerificationService
from ..utils.logger import get_logger
from .base import BaseWorkflow, InputT, OutputT, WorkflowConfig

logger = get_logger(__name__)

MIN_STATUS_CONFIDENCE = 0.7


@dataclass
class EnrichOutcome:
    result: RestaurantEnrichmentResult
    persisted: bool


@dataclass
class StatusOutcome:
    result: Optional[RestaurantStatusResult]
    persisted: bool


def token_estimate(estimated_tokens: int, max_tokens: int, model: str = DEFAULT_MODEL) -> CostEstimate:
    """Price a token estimate as an even prompt/completion split."""
    return CostEstimate(
        estimated_tokens=estimated_tokens,
        estimated_usd=estimate_token_cost(estimated_tokens / 2, estimated_tokens / 2, model),
        max_tokens=max_tokens,
        max_usd=estimate_token_cost(max_tokens / 2, max_tokens / 2, model),
    )


class RestaurantWorkflow(BaseWorkflow[InputT, OutputT], Generic[InputT, OutputT]):
    """Base for workflows that enrich and verify one restaurant record."""

    def __init__(
        self,
        config: WorkflowConfig,
        repository: RestaurantRepository,
        enrichment: RestaurantEnrichmentService,
        status: StatusVerificationService,
        *,
        tracker: TokenTracker | None = None,
        hooks: WorkflowHooks | None = None,
    ) -> None:
        super().__init__(config, tracker=tracker, hooks=hooks)
        self.repository = repository
        self.enrichment = enrichment
        self.status = status

    async def _fetch_step(self, name: str, restaurant_id: str) -> RestaurantRecord:
        step = self.start_step(name)
        try:
            result = await self.repository.get_by_id(restaurant_id)
            if isinstance(result, Err):
                raise StepFailedError(f"Restaurant not found: {result.error}", name)
        except Exception as exc:
            self.fail_step(step, str(exc))
            raise

        record = result.data
        self.complete_step(step, metadata={
            "restaurant_name": record.name,
            "city": record.city,
            "state": record.state,
            "last_enriched_at": record.last_enriched_at.isoformat() if record.last_enriched_at else None,
        })
        return record

    async def _enrich_step(
        self,
        name: str,
        restaurant_id: str,
        restaurant_name: str,
        city: str,
        state: str | None,
        episode_title: str | None = None,
        dry_run: bool = False,
    ) -> EnrichOutcome:
        """Fatal step: any failure is re-raised after the step is marked failed."""
        step = self.start_step(name)
        try:
            result = await self.enrichment.enrich_restaurant(
                restaurant_id, restaurant_name, city, state, episode_title
            )
            if not result.success:
                self.tracker.track(result.tokens_used)
                raise StepFailedError(result.error or "Enrichment failed", name)

            persisted = False
            if not dry_run and result.description:
                update = await self.repository.update_enrichment_data(
                    restaurant_id, result.to_enrichment_data()
                )
                if isinstance(update, Err):
                    raise StepFailedError(f"Failed to save enrichment data: {update.error}", name)
                persisted = True
        except Exception as exc:
            self.fail_step(step, str(exc))
            raise

        self.complete_step(step, result.tokens_used, {
            "enriched": persisted,
            "cuisines": result.cuisines,
            "price_tier": result.price_tier,
        })
        return EnrichOutcome(result=result, persisted=persisted)

    async def _status_step(
        self,
        name: str,
        restaurant_id: str,
        restaurant_name: str,
        city: str,
        state: str | None,
        google_place_id: str | None,
        dry_run: bool = False,
    ) -> StatusOutcome:
        """Non-fatal step: failures are recorded as ``status_verification_failed``."""
        step = self.start_step(name)
        try:
            result = await self.status.verify_status(
                restaurant_id, restaurant_name, city, state, google_place_id
            )
            if not result.success:
                logger.warning("Status verification failed for %s: %s", restaurant_name, result.error)

            persisted = False
            if (
                not dry_run
                and result.success
                and result.status != "unknown"
                and result.confidence >= MIN_STATUS_CONFIDENCE
            ):
                update = await self.repository.update_status(
                    restaurant_id, result.status, result.confidence, result.reason
                )
                if isinstance(update, Err):
                    logger.error("Failed to update status for %s: %s", restaurant_name, update.error)
                else:
                    persisted = True

            self.complete_step(step, result.tokens_used, {
                "status": result.status,
                "confidence": result.confidence,
                "source": result.source,
            })
            return StatusOutcome(result=result, persisted=persisted)
        except Exception as exc:
            self.fail_step(step, str(exc))
            self.add_error("status_verification_failed", str(exc), fatal=False, step=step)
            return StatusOutcome(result=None, persisted=False)

    async def _timestamp_step(self, restaurant_id: str) -> Optional[str]:
        step = self.start_step("Update enrichment timestamp")
        try:
            result = await self.repository.set_enrichment_timestamp(restaurant_id)
            if isinstance(result, Err):
                raise StepFailedError(f"Failed to set timestamp: {result.error}", "timestamp")
        except Exception as exc:
            self.fail_step(step, str(exc))
            self.add_error("timestamp_update_failed", str(exc), fatal=False, step=step)
            return None
        self.complete_step(step)
        return result.data
