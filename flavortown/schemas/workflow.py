"""Workflow step, error and result envelope types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class WorkflowStep:
    """One tracked unit of work inside a workflow run.

    Attributes:
        step_number: 1-based position within the run.
        name: Human-readable step name.
        status: Current status; terminal once completed/failed/skipped.
        tokens_used: Tokens attributed to the step, if any.
        cost_usd: Cost of ``tokens_used`` at default-model pricing.
        error: Failure message for failed steps.
        metadata: Free-form step details (skip reason, counts, ...).
    """

    step_number: int
    name: str
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    tokens_used: Optional[int] = None
    cost_usd: Optional[float] = None
    error: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED)


@dataclass(frozen=True)
class WorkflowError:
    """A diagnostic recorded during a run. Fatal errors abort the workflow."""

    code: str
    message: str
    fatal: bool = False
    step: Optional[int] = None
    details: Any = None


@dataclass(frozen=True)
class CostEstimate:
    estimated_tokens: int
    estimated_usd: float
    max_tokens: int
    max_usd: float


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def failed(cls, errors: list[str]) -> ValidationResult:
        return cls(valid=False, errors=list(errors))


@dataclass(frozen=True)
class TotalCost:
    tokens: int = 0
    estimated_usd: float = 0.0


@dataclass(frozen=True)
class WorkflowResult(Generic[T]):
    """Uniform result envelope returned by every ``execute()`` call.

    A fresh instance is built per call; steps and errors are snapshots.
    """

    success: bool
    workflow_id: str
    workflow_name: str
    status: WorkflowStatus
    steps: tuple[WorkflowStep, ...]
    started_at: datetime
    completed_at: datetime
    duration_ms: int
    output: Optional[T] = None
    total_cost: TotalCost = field(default_factory=TotalCost)
    errors: tuple[WorkflowError, ...] = ()

    @property
    def fatal_errors(self) -> list[WorkflowError]:
        return [e for e in self.errors if e.fatal]

    def error_codes(self) -> list[str]:
        return [e.code for e in self.errors]
