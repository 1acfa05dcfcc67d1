"""Tests for the LLMClient protocol and the OpenAI adapter."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from flavortown.providers.base import LLMAPIError, LLMClient, LLMResponse
from flavortown.providers.openai import OpenAIClient


def _completion(content="{}", usage=True):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15) if usage else None,
    )


def _client_with(create: AsyncMock, **kwargs) -> OpenAIClient:
    inner = MagicMock()
    inner.chat.completions.create = create
    client = OpenAIClient(api_key="test", **kwargs)
    client._client = inner
    return client


class TestLLMAPIError:
    def test_defaults(self):
        e = LLMAPIError("boom")
        assert str(e) == "boom"
        assert e.status_code is None
        assert e.retry_after is None
        assert e.is_rate_limit is False


class TestOpenAIClient:
    def test_satisfies_protocol(self):
        assert isinstance(OpenAIClient(api_key="test"), LLMClient)

    @patch("openai.AsyncOpenAI")
    def test_lazy_client_creation(self, mock_cls):
        client = OpenAIClient(api_key="key123", timeout=30.0)
        assert client._client is None

        inner = client._get_client()

        mock_cls.assert_called_once_with(api_key="key123", timeout=30.0)
        assert inner is mock_cls.return_value
        assert client._get_client() is inner

    @patch("openai.AsyncOpenAI")
    def test_base_url_passed_to_sdk(self, mock_cls):
        client = OpenAIClient(api_key="not-needed", base_url="http://localhost:1234/v1")
        client._get_client()
        mock_cls.assert_called_once_with(api_key="not-needed", timeout=60.0, base_url="http://localhost:1234/v1")

    @pytest.mark.asyncio
    async def test_complete_success(self):
        create = AsyncMock(return_value=_completion('{"f": 1}'))
        client = _client_with(create)

        result = await client.complete(
            messages=[{"role": "user", "content": "hi"}],
            model="gpt-4o-mini",
            temperature=0.2,
            max_tokens=100,
        )

        assert isinstance(result, LLMResponse)
        assert result.content == '{"f": 1}'
        assert result.usage.total_tokens == 15
        assert result.usage.model == "gpt-4o-mini"
        assert "service_tier" not in create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_flex_requests_flex_service_tier(self):
        create = AsyncMock(return_value=_completion(usage=False))
        client = _client_with(create, flex=True)

        result = await client.complete(messages=[], model="gpt-4o-mini", temperature=0.0, max_tokens=10)

        assert create.await_args.kwargs["service_tier"] == "flex"
        assert result.usage is None

    @pytest.mark.asyncio
    async def test_missing_content_becomes_empty_string(self):
        client = _client_with(AsyncMock(return_value=_completion(None)))
        result = await client.complete(messages=[], model="m", temperature=0.0, max_tokens=10)
        assert result.content == ""

    @pytest.mark.asyncio
    async def test_rate_limit_raises_llm_api_error(self):
        from openai import RateLimitError

        response = MagicMock()
        response.status_code = 429
        response.headers = {"retry-after": "2.5"}
        exc = RateLimitError(message="Rate limit exceeded", response=response, body=None)
        client = _client_with(AsyncMock(side_effect=exc))

        with pytest.raises(LLMAPIError) as exc_info:
            await client.complete(messages=[], model="gpt-4o-mini", temperature=0.0, max_tokens=10)

        assert exc_info.value.is_rate_limit is True
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 2.5

    @pytest.mark.asyncio
    async def test_timeout_raises_llm_api_error(self):
        from openai import APITimeoutError

        client = _client_with(AsyncMock(side_effect=APITimeoutError(request=MagicMock())))

        with pytest.raises(LLMAPIError) as exc_info:
            await client.complete(messages=[], model="gpt-4o-mini", temperature=0.0, max_tokens=10)

        assert exc_info.value.status_code == 408
        assert exc_info.value.is_rate_limit is False
