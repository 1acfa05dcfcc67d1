"""Multi-step enrichment workflows."""

from .base import BaseWorkflow, WorkflowConfig
from .manual_addition import ManualAdditionInput, ManualAdditionOutput, ManualRestaurantAdditionWorkflow
from .refresh_stale import RefreshInput, RefreshOutput, RefreshScope, RefreshStaleRestaurantWorkflow
from .status_sweep import RestaurantStatusSweepWorkflow, StatusSweepInput, StatusSweepOutput, StatusUpdate

__all__ = [
    "BaseWorkflow",
    "WorkflowConfig",
    "ManualAdditionInput",
    "ManualAdditionOutput",
    "ManualRestaurantAdditionWorkflow",
    "RefreshInput",
    "RefreshOutput",
    "RefreshScope",
    "RefreshStaleRestaurantWorkflow",
    "RestaurantStatusSweepWorkflow",
    "StatusSweepInput",
    "StatusSweepOutput",
    "StatusUpdate",
]
