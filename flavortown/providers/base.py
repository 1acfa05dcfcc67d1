"""LLMClient protocol and LLMResponse: provider-agnostic completion interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from ..schemas.base import TokenUsage


@dataclass
class LLMResponse:
    """Response from a completion provider.

    Attributes:
        content: The text content of the first choice.
        usage: Token usage information, when the provider reports it.
    """

    content: str
    usage: Optional[TokenUsage] = None


class LLMAPIError(Exception):
    """Provider-agnostic API error.

    Wraps SDK-specific errors (openai.RateLimitError, APITimeoutError, ...)
    so the synthesis retry loop never depends on a particular SDK.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
        is_rate_limit: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.is_rate_limit = is_rate_limit


@runtime_checkable
class LLMClient(Protocol):
    """Protocol all completion adapters must satisfy."""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse: ...
