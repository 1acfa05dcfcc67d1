"""
Flavortown - enrichment workflows for a Diners, Drive-Ins and Dives directory.

Searches the web, synthesizes structured listing content with an LLM,
verifies open/closed status through Google Places, and writes the results
back to the directory's Supabase store.
"""

from .app import EnrichmentApp
from .core import EnrichmentConfig, EnrichmentError, TokenTracker
from .schemas import TokenUsage, WorkflowResult, WorkflowStatus
from .workflows import (
    ManualRestaurantAdditionWorkflow,
    RefreshStaleRestaurantWorkflow,
    RestaurantStatusSweepWorkflow,
)

__version__ = "0.1.0"

__all__ = [
    'EnrichmentApp',
    'EnrichmentConfig',
    'EnrichmentError',
    'TokenTracker',
    'TokenUsage',
    'WorkflowResult',
    'WorkflowStatus',
    'ManualRestaurantAdditionWorkflow',
    'RefreshStaleRestaurantWorkflow',
    'RestaurantStatusSweepWorkflow',
]
