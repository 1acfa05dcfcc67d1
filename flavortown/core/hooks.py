"""Lifecycle hooks for workflow observability.

Typed event dataclasses + ``WorkflowHooks`` container. Hook callables are
optional; ``_fire_hook`` catches errors so a broken hook never changes a
workflow's outcome.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from ..schemas.workflow import WorkflowResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowStartEvent:
    """Fired once after per-run state is reset, before validation."""

    workflow_id: str
    workflow_name: str
    input: Any


@dataclass(frozen=True)
class WorkflowEndEvent:
    """Fired once with the final result, on every exit path."""

    result: WorkflowResult


@dataclass
class WorkflowHooks:
    """Hook container passed to a workflow constructor.

    Sync and async callables both work. Errors are caught and logged.
    """

    on_workflow_start: Optional[Callable[[WorkflowStartEvent], Any]] = None
    on_workflow_end: Optional[Callable[[WorkflowEndEvent], Any]] = None


async def _fire_hook(hook: Optional[Callable], event: Any) -> None:
    """Call *hook* with *event*, awaiting if async. Catches and logs errors."""
    if hook is None:
        return
    try:
        result = hook(event)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.warning("Hook %s raised an exception", hook, exc_info=True)
