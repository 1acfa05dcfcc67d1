"""
Custom exceptions for the flavortown enrichment engine.

Workflow-level failures are reported as data (``WorkflowError`` entries on a
``WorkflowResult``); the exceptions below are raised by clients and services
and caught by the workflow step that called them.
"""

from __future__ import annotations

from typing import Any, Optional


class EnrichmentError(Exception):
    """Base exception for all enrichment-related errors."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        self.message = message
        self.entity_id = entity_id
        self.provider = provider

        error_parts = [message]
        if entity_id is not None:
            error_parts.append(f"Entity: {entity_id}")
        if provider is not None:
            error_parts.append(f"Provider: {provider}")

        super().__init__(" | ".join(error_parts))


class ConfigurationError(EnrichmentError):
    """Raised when configuration is invalid or a required key is missing."""
    pass


class ProviderError(EnrichmentError):
    """Raised when an external provider call fails after retries."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(message, entity_id=entity_id, provider=provider)


class SearchError(ProviderError):
    """Raised when the web-search provider fails or times out."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs: Any):
        self.query = query
        kwargs.setdefault("provider", "tavily")
        super().__init__(message, **kwargs)


class PlacesAPIError(ProviderError):
    """Raised when the Google Places API fails after retries."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("provider", "google_places")
        super().__init__(message, **kwargs)


class StepFailedError(EnrichmentError):
    """Raised inside ``execute_steps`` when a fatal step cannot continue."""

    def __init__(self, message: str, step_name: str, code: str = "step_failed"):
        self.step_name = step_name
        self.code = code
        super().__init__(message)


class WorkflowTimeoutError(EnrichmentError):
    """Raised when ``execute_steps`` overruns the workflow deadline."""

    def __init__(self, workflow_name: str, timeout_seconds: float):
        self.workflow_name = workflow_name
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Workflow timeout after {timeout_seconds:g}s")
