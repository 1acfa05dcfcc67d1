"""OpenAI provider adapter over the Chat Completions API.

The same adapter serves the remote primary model and a local
OpenAI-compatible server (LM Studio) via ``base_url``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from ..schemas.base import TokenUsage
from .base import LLMAPIError, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIClient:
    """Adapter for OpenAI and OpenAI-compatible endpoints.

    Args:
        api_key: API key. Falls back to ``OPENAI_API_KEY``.
        base_url: Alternate endpoint, e.g. ``http://localhost:1234/v1``.
        timeout: Per-request timeout in seconds.
        flex: Request the discounted ``flex`` service tier.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        flex: bool = False,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._flex = flex
        self._client: Any = None

    @property
    def base_url(self) -> str | None:
        return self._base_url

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI

            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            kwargs: dict[str, Any] = {"api_key": key, "timeout": self._timeout}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        from openai import APIError, APITimeoutError, RateLimitError

        client = self._get_client()
        kwargs: dict[str, Any] = dict(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if self._flex:
            kwargs["service_tier"] = "flex"

        try:
            response = await client.chat.completions.create(**kwargs)
        except RateLimitError as exc:
            retry_after = None
            if hasattr(exc, "response") and exc.response is not None:
                retry_after_header = exc.response.headers.get("retry-after")
                if retry_after_header:
                    try:
                        retry_after = float(retry_after_header)
                    except (ValueError, TypeError):
                        pass
            raise LLMAPIError(
                f"OpenAI rate limit for model '{model}': {exc}",
                status_code=429,
                retry_after=retry_after,
                is_rate_limit=True,
            ) from exc
        except APITimeoutError as exc:
            raise LLMAPIError(
                f"OpenAI timeout for model '{model}': {exc}",
                status_code=408,
            ) from exc
        except APIError as exc:
            raise LLMAPIError(
                f"OpenAI API error for model '{model}': {exc}",
                status_code=getattr(exc, "status_code", None),
            ) from exc

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        usage = None
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
                model=model,
            )

        return LLMResponse(content=content, usage=usage)
