"""Batch re-verification of open/closed status across many restaurants."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from tqdm.auto import tqdm

from ..core.exceptions import StepFailedError
from ..core.hooks import WorkflowHooks
from ..core.pricing import TokenTracker
from ..repositories import Err, RestaurantRepository
from ..schemas.base import TokenUsage
from ..schemas.records import RestaurantRecord, StatusCriteria
from ..schemas.workflow import CostEstimate, ValidationResult
from ..services.status import RestaurantStatusResult, StatusVerificationService
from ..utils.logger import get_logger
from .base import BaseWorkflow, WorkflowConfig
from .restaurant_base import token_estimate

logger = get_logger(__name__)

UUID_LENGTH = 36
TOKENS_PER_RESTAURANT = 800
MAX_TOKENS_PER_RESTAURANT = 1200
DEFAULT_BATCH_SIZE = 10
DEFAULT_MIN_CONFIDENCE = 0.7


@dataclass
class StatusSweepInput:
    """Exactly one of ``restaurant_ids`` or ``criteria`` must be set."""

    restaurant_ids: Optional[list[str]] = None
    criteria: Optional[StatusCriteria] = None
    limit: Optional[int] = None
    min_confidence: float = DEFAULT_MIN_CONFIDENCE
    batch_size: int = DEFAULT_BATCH_SIZE
    dry_run: bool = False


@dataclass(frozen=True)
class StatusUpdate:
    restaurant_id: str
    restaurant_name: str
    old_status: str
    new_status: str
    confidence: float


@dataclass
class StatusSweepOutput:
    total_processed: int = 0
    total_updated: int = 0
    total_skipped: int = 0
    total_failed: int = 0
    updates: list[StatusUpdate] = field(default_factory=list)


@dataclass
class _ItemOutcome:
    outcome: str  # "updated" | "skipped" | "failed"
    result: RestaurantStatusResult
    update: Optional[StatusUpdate] = None


class RestaurantStatusSweepWorkflow(BaseWorkflow[StatusSweepInput, StatusSweepOutput]):
    """Verify status for a set of restaurants, writing only confident changes.

    Restaurants are verified in batches; items within a batch run
    concurrently and the shared rate limiters bound provider traffic.
    A status is written only when the verification succeeded, is not
    ``unknown``, meets ``min_confidence`` and differs from the stored status.
    """

    def __init__(
        self,
        repository: RestaurantRepository,
        status: StatusVerificationService,
        *,
        config: WorkflowConfig | None = None,
        tracker: TokenTracker | None = None,
        hooks: WorkflowHooks | None = None,
    ) -> None:
        super().__init__(
            config or WorkflowConfig(
                workflow_name="restaurant-status-sweep",
                max_cost_usd=10.0,
                timeout_seconds=1800,
            ),
            tracker=tracker,
            hooks=hooks,
        )
        self.repository = repository
        self.status = status

    def validate(self, input: StatusSweepInput) -> ValidationResult:
        errors: list[str] = []
        if input.restaurant_ids is not None and input.criteria is not None:
            errors.append("Cannot specify both restaurant_ids and criteria")
        if input.restaurant_ids is None and input.criteria is None:
            errors.append("Must specify either restaurant_ids or criteria")
        for restaurant_id in input.restaurant_ids or []:
            if not restaurant_id or len(restaurant_id) != UUID_LENGTH:
                errors.append(f"Invalid restaurant ID: {restaurant_id}")
        if input.limit is not None and input.limit < 1:
            errors.append("Limit must be at least 1")
        if not 0 <= input.min_confidence <= 1:
            errors.append("min_confidence must be between 0 and 1")
        if input.batch_size < 1:
            errors.append("batch_size must be at least 1")
        return ValidationResult(valid=not errors, errors=errors)

    async def estimate_cost(self, input: StatusSweepInput) -> CostEstimate:
        if input.restaurant_ids is not None:
            count = len(input.restaurant_ids)
        else:
            result = await self.repository.count_for_status_check(input.criteria)
            if isinstance(result, Err):
                raise RuntimeError(result.error)
            count = result.data

        if input.limit is not None:
            count = min(count, input.limit)
        return token_estimate(count * TOKENS_PER_RESTAURANT, count * MAX_TOKENS_PER_RESTAURANT)

    async def _fetch(self, input: StatusSweepInput) -> list[RestaurantRecord]:
        if input.restaurant_ids is not None:
            result = await self.repository.get_bulk(input.restaurant_ids)
            if isinstance(result, Err):
                raise RuntimeError(result.error)
            by_id = {record.id: record for record in result.data}
            records = [by_id[rid] for rid in dict.fromkeys(input.restaurant_ids) if rid in by_id]
            return records[: input.limit] if input.limit is not None else records

        result = await self.repository.find_for_status_check(input.criteria, input.limit)
        if isinstance(result, Err):
            raise RuntimeError(result.error)
        return result.data

    async def execute_steps(self, input: StatusSweepInput) -> StatusSweepOutput:
        output = StatusSweepOutput()

        fetch_step = self.start_step("Fetch restaurants to verify")
        try:
            restaurants = await self._fetch(input)
        except Exception as exc:
            self.fail_step(fetch_step, str(exc))
            raise StepFailedError(f"Failed to fetch restaurants: {exc}", "fetch") from exc
        self.complete_step(fetch_step, metadata={"restaurant_count": len(restaurants)})

        if not restaurants:
            return output

        batch_size = input.batch_size
        batches = [restaurants[i:i + batch_size] for i in range(0, len(restaurants), batch_size)]
        progress = tqdm(
            total=len(restaurants),
            desc="Status sweep",
            unit="restaurant",
            disable=not self.config.show_progress,
        )
        try:
            for batch_number, batch in enumerate(batches, start=1):
                step = self.start_step(
                    f"Verify batch {batch_number}/{len(batches)} ({len(batch)} restaurants)"
                )
                try:
                    await self._run_batch(step, batch, input, output)
                except Exception as exc:
                    self.fail_step(step, str(exc))
                    self.add_error("batch_verification_failed", str(exc), fatal=False, step=step)
                progress.update(len(batch))
        finally:
            progress.close()

        logger.info(
            "Status sweep: %d processed, %d updated, %d skipped, %d failed",
            output.total_processed,
            output.total_updated,
            output.total_skipped,
            output.total_failed,
        )
        return output

    async def _run_batch(
        self,
        step: int,
        batch: list[RestaurantRecord],
        input: StatusSweepInput,
        output: StatusSweepOutput,
    ) -> None:
        raw_results = await asyncio.gather(
            *(self._verify_one(restaurant, input) for restaurant in batch),
            return_exceptions=True,
        )

        usage = TokenUsage()
        fulfilled = rejected = 0
        for restaurant, item in zip(batch, raw_results):
            output.total_processed += 1
            if isinstance(item, BaseException):
                rejected += 1
                output.total_failed += 1
                logger.warning("Status check failed for %s: %s", restaurant.name, item)
                continue

            fulfilled += 1
            usage = usage + item.result.tokens_used
            if item.outcome == "updated":
                output.total_updated += 1
                output.updates.append(item.update)
            elif item.outcome == "skipped":
                output.total_skipped += 1
            else:
                output.total_failed += 1

        self.complete_step(step, usage, {
            "batch_size": len(batch),
            "fulfilled": fulfilled,
            "rejected": rejected,
        })

    async def _verify_one(self, restaurant: RestaurantRecord, input: StatusSweepInput) -> _ItemOutcome:
        result = await self.status.verify_status(
            restaurant.id,
            restaurant.name,
            restaurant.city or "",
            restaurant.state,
            restaurant.google_place_id,
        )

        if not result.success:
            return _ItemOutcome("failed", result)
        if result.confidence < input.min_confidence or result.status == "unknown":
            return _ItemOutcome("skipped", result)
        if result.status == restaurant.status:
            return _ItemOutcome("skipped", result)

        if not input.dry_run:
            update = await self.repository.update_status(
                restaurant.id, result.status, result.confidence, result.reason
            )
            if isinstance(update, Err):
                logger.error("Failed to update status for %s: %s", restaurant.name, update.error)
                return _ItemOutcome("failed", result)

        return _ItemOutcome(
            "updated",
            result,
            StatusUpdate(
                restaurant_id=restaurant.id,
                restaurant_name=restaurant.name,
                old_status=restaurant.status,
                new_status=result.status,
                confidence=result.confidence,
            ),
        )
