"""Enrich a restaurant that was just added to the directory by hand."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..clients.places import MIN_MATCH_CONFIDENCE, PlacesClient
from ..core.hooks import WorkflowHooks
from ..core.pricing import TokenTracker
from ..repositories import Err, RestaurantRepository
from ..schemas.records import RestaurantRecord, RestaurantStatus
from ..schemas.workflow import CostEstimate, ValidationResult
from ..services.enrichment import RestaurantEnrichmentService
from ..services.sanitize import is_valid_uuid
from ..services.status import StatusVerificationService
from ..utils.logger import get_logger
from .base import WorkflowConfig
from .restaurant_base import RestaurantWorkflow, token_estimate

logger = get_logger(__name__)

ENRICHMENT_TOKENS = 1500
STATUS_TOKENS = 800
MAX_TOKENS = 3000


@dataclass
class ManualAdditionInput:
    restaurant_id: str
    name: str
    city: str
    state: Optional[str] = None
    episode_title: Optional[str] = None
    dry_run: bool = False


@dataclass
class ManualAdditionOutput:
    restaurant_id: str
    restaurant_name: str
    enriched: bool = False
    status_verified: bool = False
    google_place_id_updated: bool = False
    final_status: RestaurantStatus = "unknown"
    status_confidence: float = 0.0


class ManualRestaurantAdditionWorkflow(RestaurantWorkflow[ManualAdditionInput, ManualAdditionOutput]):
    """Verify, enrich and status-check one newly added restaurant.

    Steps:
        1. Verify the record exists (fatal).
        2. Match a Google place ID when the record has none and a Places
           client is configured (non-fatal).
        3. Enrich and persist listing data (fatal).
        4. Verify open/closed status (non-fatal).
        5. Stamp the enrichment timestamp when data was written (non-fatal).
    """

    def __init__(
        self,
        repository: RestaurantRepository,
        enrichment: RestaurantEnrichmentService,
        status: StatusVerificationService,
        places: PlacesClient | None = None,
        *,
        config: WorkflowConfig | None = None,
        tracker: TokenTracker | None = None,
        hooks: WorkflowHooks | None = None,
    ) -> None:
        super().__init__(
            config or WorkflowConfig(
                workflow_name="manual-restaurant-addition",
                max_cost_usd=5.0,
                timeout_seconds=600,
            ),
            repository,
            enrichment,
            status,
            tracker=tracker,
            hooks=hooks,
        )
        self.places = places
        self._record: RestaurantRecord | None = None

    def validate(self, input: ManualAdditionInput) -> ValidationResult:
        errors: list[str] = []
        if not input.restaurant_id or not is_valid_uuid(input.restaurant_id):
            errors.append("Invalid restaurant ID (must be valid UUID v4)")
        if not input.name or not input.name.strip():
            errors.append("Restaurant name is required")
        if not input.city or not input.city.strip():
            errors.append("City is required")
        return ValidationResult(valid=not errors, errors=errors)

    async def estimate_cost(self, input: ManualAdditionInput) -> CostEstimate:
        return token_estimate(ENRICHMENT_TOKENS + STATUS_TOKENS, MAX_TOKENS)

    async def execute_steps(self, input: ManualAdditionInput) -> ManualAdditionOutput:
        output = ManualAdditionOutput(restaurant_id=input.restaurant_id, restaurant_name=input.name)

        self._record = await self._fetch_step("Verify restaurant exists in database", input.restaurant_id)
        place_id = self._record.google_place_id

        if not place_id and self.places is not None:
            place_id, output.google_place_id_updated = await self._match_place_step(input)

        enrich = await self._enrich_step(
            "Enrich restaurant data (description, cuisines, price)",
            input.restaurant_id,
            input.name,
            input.city,
            input.state,
            episode_title=input.episode_title,
            dry_run=input.dry_run,
        )
        output.enriched = enrich.persisted

        status = await self._status_step(
            "Verify restaurant status (open/closed)",
            input.restaurant_id,
            input.name,
            input.city,
            input.state,
            place_id,
            dry_run=input.dry_run,
        )
        if status.result is not None:
            output.final_status = status.result.status
            output.status_confidence = status.result.confidence
        output.status_verified = status.persisted

        if not input.dry_run and output.enriched:
            await self._timestamp_step(input.restaurant_id)

        return output

    async def _match_place_step(self, input: ManualAdditionInput) -> tuple[Optional[str], bool]:
        """Returns the matched place ID (or None) and whether it was written."""
        step = self.start_step("Match Google Place ID")
        try:
            match = await self.places.find_place_id(input.name, input.city, input.state)
            if match.place_id is None or match.confidence < MIN_MATCH_CONFIDENCE:
                self.skip_step(step, f"No confident match (confidence {match.confidence:.2f})")
                return None, False

            written = False
            if not input.dry_run:
                update = await self.repository.update_google_place_id(input.restaurant_id, match.place_id)
                if isinstance(update, Err):
                    raise RuntimeError(f"Failed to save Google Place ID: {update.error}")
                written = True
        except Exception as exc:
            self.fail_step(step, str(exc))
            self.add_error("place_match_failed", str(exc), fatal=False, step=step)
            return None, False

        logger.info("Matched %s to place %s (%.2f)", input.name, match.place_id, match.confidence)
        self.complete_step(step, metadata={
            "place_id": match.place_id,
            "matched_name": match.matched_name,
            "confidence": match.confidence,
        })
        return match.place_id, written
