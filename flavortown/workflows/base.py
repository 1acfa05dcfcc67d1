"""BaseWorkflow: validated, cost-gated, time-bounded step runner.

Subclasses supply ``validate``, ``estimate_cost`` and ``execute_steps``;
``execute`` wraps them in the shared lifecycle:

    reset -> validate -> estimate (budget gate) -> steps under timeout -> result

``execute`` never raises. Every exit path returns a populated
``WorkflowResult``. Step bookkeeping (``start_step`` followed by exactly one
of ``complete_step`` / ``fail_step`` / ``skip_step``) is a contract for
subclasses and is not enforced.
"""

from __future__ import annotations

import asyncio
import dataclasses
import random
import string
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from ..core.exceptions import WorkflowTimeoutError
from ..core.hooks import WorkflowEndEvent, WorkflowHooks, WorkflowStartEvent, _fire_hook
from ..core.pricing import DEFAULT_MODEL, TokenTracker, estimate_usage_cost
from ..schemas.base import TokenUsage
from ..schemas.workflow import (
    CostEstimate,
    StepStatus,
    TotalCost,
    ValidationResult,
    WorkflowError,
    WorkflowResult,
    WorkflowStatus,
    WorkflowStep,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class WorkflowConfig:
    """Per-workflow limits.

    Attributes:
        workflow_name: Stable name used in ids, logs and results.
        max_cost_usd: Ceiling for the pre-flight estimate.
        timeout_seconds: Deadline for ``execute_steps``.
        allow_rollback: Call ``rollback()`` when steps raise (not on timeout).
        show_progress: Let batched workflows display a progress bar.
    """

    workflow_name: str
    max_cost_usd: float
    timeout_seconds: float
    allow_rollback: bool = False
    show_progress: bool = False

    def __post_init__(self):
        if self.max_cost_usd < 0:
            raise ValueError(f"max_cost_usd must be non-negative, got {self.max_cost_usd}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")


def generate_workflow_id(workflow_name: str) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"{workflow_name}-{int(time.time() * 1000)}-{suffix}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseWorkflow(ABC, Generic[InputT, OutputT]):
    """Abstract base for multi-step enrichment workflows.

    Args:
        config: Limits and behaviour flags.
        tracker: Token accumulator owned by this workflow; reset every run.
        hooks: Optional start/end lifecycle hooks.
    """

    def __init__(
        self,
        config: WorkflowConfig,
        *,
        tracker: TokenTracker | None = None,
        hooks: WorkflowHooks | None = None,
    ) -> None:
        self.config = config
        self.tracker = tracker or TokenTracker()
        self.hooks = hooks or WorkflowHooks()
        self.workflow_id = generate_workflow_id(config.workflow_name)
        self._steps: list[WorkflowStep] = []
        self._errors: list[WorkflowError] = []
        self._started_at: datetime = _utcnow()
        self._started_monotonic = time.monotonic()

    # -- subclass contract -------------------------------------------------

    @abstractmethod
    def validate(self, input: InputT) -> ValidationResult:
        """Pure, synchronous input check. No external calls."""

    @abstractmethod
    async def estimate_cost(self, input: InputT) -> CostEstimate:
        """Size the run before any paid call is made."""

    @abstractmethod
    async def execute_steps(self, input: InputT) -> OutputT:
        """Run the step sequence and return the workflow output."""

    async def rollback(self) -> None:
        logger.info("[%s] Rollback not implemented for this workflow", self.config.workflow_name)

    # -- lifecycle ---------------------------------------------------------

    def _reset(self) -> None:
        self._steps = []
        self._errors = []
        self.tracker.reset()
        self.workflow_id = generate_workflow_id(self.config.workflow_name)
        self._started_at = _utcnow()
        self._started_monotonic = time.monotonic()

    async def execute(self, input: InputT) -> WorkflowResult[OutputT]:
        self._reset()
        await _fire_hook(self.hooks.on_workflow_start, WorkflowStartEvent(
            workflow_id=self.workflow_id,
            workflow_name=self.config.workflow_name,
            input=input,
        ))
        logger.info("[%s] Starting %s", self.config.workflow_name, self.workflow_id)

        result = await self._run(input)

        logger.info(
            "[%s] Finished %s: %s in %dms (%d steps, %d tokens, $%.4f)",
            self.config.workflow_name,
            self.workflow_id,
            result.status.value,
            result.duration_ms,
            len(result.steps),
            result.total_cost.tokens,
            result.total_cost.estimated_usd,
        )
        await _fire_hook(self.hooks.on_workflow_end, WorkflowEndEvent(result=result))
        return result

    async def _run(self, input: InputT) -> WorkflowResult[OutputT]:
        try:
            validation = self.validate(input)
        except Exception as exc:
            return self._failure("validation_failed", f"Validation failed: {exc}")
        if not validation.valid:
            return self._failure("validation_failed", f"Validation failed: {', '.join(validation.errors)}")

        try:
            estimate = await self.estimate_cost(input)
        except Exception as exc:
            return self._failure("cost_estimation_failed", f"Cost estimation failed: {exc}")
        if estimate.estimated_usd > self.config.max_cost_usd:
            return self._failure(
                "cost_limit_exceeded",
                f"Estimated cost ${estimate.estimated_usd:.2f} exceeds limit ${self.config.max_cost_usd:.2f}",
                details=dataclasses.asdict(estimate),
            )

        task = asyncio.ensure_future(self.execute_steps(input))
        done, _ = await asyncio.wait({task}, timeout=self.config.timeout_seconds)
        if not done:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.debug("Workflow task raised while cancelling", exc_info=True)
            timeout = WorkflowTimeoutError(self.config.workflow_name, self.config.timeout_seconds)
            return self._failure("timeout", str(timeout))

        exc = task.exception()
        if exc is None:
            return self._result(True, WorkflowStatus.COMPLETED, output=task.result())

        message = str(exc) or type(exc).__name__
        logger.error("[%s] Steps failed: %s", self.config.workflow_name, message)

        if self.config.allow_rollback:
            try:
                await self.rollback()
            except Exception as rollback_exc:
                return self._failure(
                    "rollback_failed",
                    f"Workflow failed and rollback failed: {message}. Rollback error: {rollback_exc}",
                )
            self._errors.append(WorkflowError(code="rolled_back", message=message, fatal=True))
            return self._result(False, WorkflowStatus.ROLLED_BACK)

        return self._failure("execution_failed", message)

    # -- step bookkeeping --------------------------------------------------

    def start_step(self, name: str) -> int:
        """Append a RUNNING step and return its 1-based number."""
        step_number = len(self._steps) + 1
        self._steps.append(WorkflowStep(
            step_number=step_number,
            name=name,
            status=StepStatus.RUNNING,
            started_at=_utcnow(),
        ))
        logger.debug("[%s] Step %d: %s", self.config.workflow_name, step_number, name)
        return step_number

    def _step(self, step_number: int) -> Optional[WorkflowStep]:
        if 1 <= step_number <= len(self._steps):
            return self._steps[step_number - 1]
        return None

    def complete_step(
        self,
        step_number: int,
        tokens_used: TokenUsage | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        step = self._step(step_number)
        if step is None:
            return
        step.status = StepStatus.COMPLETED
        step.completed_at = _utcnow()
        step.metadata = metadata
        if tokens_used is not None:
            self.tracker.track(tokens_used)
            step.tokens_used = tokens_used.total_tokens
            step.cost_usd = estimate_usage_cost(tokens_used, DEFAULT_MODEL)

    def fail_step(self, step_number: int, error: str) -> None:
        step = self._step(step_number)
        if step is None:
            return
        step.status = StepStatus.FAILED
        step.completed_at = _utcnow()
        step.error = error
        logger.warning("[%s] Step %d failed: %s", self.config.workflow_name, step_number, error)

    def skip_step(self, step_number: int, reason: str) -> None:
        step = self._step(step_number)
        if step is None:
            return
        step.status = StepStatus.SKIPPED
        step.completed_at = _utcnow()
        step.metadata = {"skip_reason": reason}

    def add_error(
        self,
        code: str,
        message: str,
        fatal: bool = False,
        details: Any = None,
        step: int | None = None,
    ) -> None:
        self._errors.append(WorkflowError(code=code, message=message, fatal=fatal, step=step, details=details))

    @property
    def steps(self) -> list[WorkflowStep]:
        return list(self._steps)

    @property
    def errors(self) -> list[WorkflowError]:
        return list(self._errors)

    # -- results -----------------------------------------------------------

    def _failure(self, code: str, message: str, details: Any = None) -> WorkflowResult[OutputT]:
        self.add_error(code, message, fatal=True, details=details)
        return self._result(False, WorkflowStatus.FAILED)

    def _result(
        self,
        success: bool,
        status: WorkflowStatus,
        output: OutputT | None = None,
    ) -> WorkflowResult[OutputT]:
        total = self.tracker.total
        steps = tuple(
            dataclasses.replace(s, metadata=dict(s.metadata) if s.metadata is not None else None)
            for s in self._steps
        )
        return WorkflowResult(
            success=success,
            workflow_id=self.workflow_id,
            workflow_name=self.config.workflow_name,
            status=status,
            steps=steps,
            output=output,
            total_cost=TotalCost(tokens=total.total_tokens, estimated_usd=self.tracker.estimate_cost()),
            errors=tuple(self._errors),
            started_at=self._started_at,
            completed_at=_utcnow(),
            duration_ms=int((time.monotonic() - self._started_monotonic) * 1000),
        )
