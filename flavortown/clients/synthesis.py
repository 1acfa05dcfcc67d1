"""Structured LLM synthesis with retry, tier selection and local fallback.

``synthesize`` sends a system/user prompt pair, pulls the first JSON object
out of the reply and validates it against a pydantic schema. Attempts are
planned up front as a list of legs (local model, then primary fallback) and
consumed by a single retry loop.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

import httpx
from pydantic import BaseModel

from ..core.rate_limiter import RateLimiter
from ..providers.base import LLMClient, LLMResponse
from ..schemas.base import TokenUsage
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_NO_THINK_PREFIX = "/no_think\n"


class SynthesisTier(str, Enum):
    """``accuracy`` always uses the primary model; ``creative`` prefers local."""

    ACCURACY = "accuracy"
    CREATIVE = "creative"


@dataclass
class SynthesisSettings:
    accuracy_model: str = "gpt-4o-mini"
    creative_model: str = "qwen3-8b"
    local_url: str = "http://localhost:1234"
    skip_local: bool = True
    slow_call_seconds: float = 5.0
    local_probe_timeout: float = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule.

    Attributes:
        retries: Extra attempts after the first on the selected model.
        backoff_base: Seconds; the wait after the n-th failure is ``backoff_base * n``.
        fallback_retries: Extra attempts on the primary model after the
            local model has exhausted ``retries``.
    """

    retries: int = 2
    backoff_base: float = 1.0
    fallback_retries: int = 1

    def delay(self, failures: int) -> float:
        return self.backoff_base * failures


@dataclass
class SynthesisResult(Generic[T]):
    """Outcome of one synthesis call. ``data`` is set only when ``success``."""

    model: str
    is_local: bool
    usage: TokenUsage = field(default_factory=TokenUsage)
    success: bool = False
    data: Optional[T] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class _Leg:
    model: str
    client: LLMClient
    is_local: bool
    retries: int


def strip_reasoning(text: str) -> str:
    """Remove ``<think>...</think>`` traces emitted by local reasoning models."""
    return _THINK_RE.sub("", text).strip()


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the first JSON object embedded in *text*.

    Tolerates surrounding prose and markdown code fences.

    Raises:
        ValueError: If no decodable JSON object is present.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    raise ValueError("No JSON object found in model response")


class SynthesisClient:
    """Schema-validated completion calls over a primary and optional local model.

    Args:
        primary: Client for the remote primary model.
        local: Client for the local OpenAI-compatible server, if any.
        settings: Model names, local URL and thresholds.
        limiter: Rate limiter applied to primary-model calls only.
        retry_policy: Attempt budget and backoff schedule.
        probe_transport: Optional httpx transport for the liveness probe.
    """

    def __init__(
        self,
        primary: LLMClient,
        *,
        local: LLMClient | None = None,
        settings: SynthesisSettings | None = None,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        probe_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._primary = primary
        self._local = local
        self.settings = settings or SynthesisSettings()
        self._limiter = limiter
        self.retry_policy = retry_policy or RetryPolicy()
        self._probe_transport = probe_transport
        self._local_available: bool | None = None

    # -- tier selection ----------------------------------------------------

    async def is_local_available(self) -> bool:
        """Probe ``{local_url}/v1/models`` once and cache the answer."""
        if self.settings.skip_local or self._local is None:
            return False
        if self._local_available is not None:
            return self._local_available

        url = f"{self.settings.local_url.rstrip('/')}/v1/models"
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.local_probe_timeout,
                transport=self._probe_transport,
            ) as http:
                response = await http.get(url)
            self._local_available = response.is_success
        except httpx.HTTPError as exc:
            logger.debug("Local model probe failed: %s", exc)
            self._local_available = False

        logger.info(
            "Local model %s at %s",
            "available" if self._local_available else "unavailable",
            self.settings.local_url,
        )
        return self._local_available

    def reset_local_check(self) -> None:
        self._local_available = None

    async def active_model(self, tier: SynthesisTier) -> str:
        if tier == SynthesisTier.CREATIVE and await self.is_local_available():
            return self.settings.creative_model
        return self.settings.accuracy_model

    async def _plan(self, tier: SynthesisTier, retries: int, fallback_retries: int) -> list[_Leg]:
        primary = _Leg(self.settings.accuracy_model, self._primary, False, retries)
        if tier == SynthesisTier.CREATIVE and await self.is_local_available():
            local = _Leg(self.settings.creative_model, self._local, True, retries)
            return [local, _Leg(primary.model, primary.client, False, fallback_retries)]
        return [primary]

    # -- calls -------------------------------------------------------------

    async def _call(
        self,
        leg: _Leg,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        if leg.is_local:
            user_prompt = _NO_THINK_PREFIX + user_prompt
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        async def _complete() -> LLMResponse:
            return await leg.client.complete(
                messages=messages,
                model=leg.model,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        started = time.monotonic()
        if self._limiter is not None and not leg.is_local:
            response = await self._limiter.add(_complete)
        else:
            response = await _complete()

        elapsed = time.monotonic() - started
        if elapsed > self.settings.slow_call_seconds:
            logger.warning("Slow synthesis call: %s took %.1fs", leg.model, elapsed)
        return response

    async def _run(
        self,
        tier: SynthesisTier,
        system_prompt: str,
        user_prompt: str,
        parse: Callable[[str], T],
        *,
        max_tokens: int,
        temperature: float,
        retries: int,
        fallback_retries: int,
    ) -> SynthesisResult[T]:
        legs = await self._plan(tier, retries, fallback_retries)
        usage = TokenUsage()
        last_error: str | None = None

        for leg_index, leg in enumerate(legs):
            if leg_index > 0:
                logger.warning(
                    "Local model %s failed, falling back to %s",
                    legs[leg_index - 1].model, leg.model,
                )
            for attempt in range(leg.retries + 1):
                try:
                    response = await self._call(leg, system_prompt, user_prompt, max_tokens, temperature)
                    if response.usage is not None:
                        usage = usage + response.usage

                    content = strip_reasoning(response.content) if leg.is_local else response.content.strip()
                    if not content:
                        raise ValueError("Empty response from model")

                    data = parse(content)
                    return SynthesisResult(
                        model=leg.model,
                        is_local=leg.is_local,
                        usage=usage,
                        success=True,
                        data=data,
                    )
                except Exception as exc:
                    last_error = str(exc)
                    logger.warning(
                        "Synthesis attempt %d/%d on %s failed: %s",
                        attempt + 1, leg.retries + 1, leg.model, exc,
                    )
                    if attempt < leg.retries:
                        await asyncio.sleep(self.retry_policy.delay(attempt + 1))

        final = legs[-1]
        return SynthesisResult(
            model=final.model,
            is_local=final.is_local,
            usage=usage,
            success=False,
            error=last_error,
        )

    async def synthesize(
        self,
        tier: SynthesisTier,
        system_prompt: str,
        user_prompt: str,
        schema: type[ModelT],
        *,
        max_tokens: int = 4000,
        temperature: float = 0.3,
        retries: int | None = None,
    ) -> SynthesisResult[ModelT]:
        """Run a schema-validated completion.

        Returns a failed result (never raises) once every planned attempt
        has been used.
        """

        def _parse(content: str) -> ModelT:
            return schema.model_validate(extract_json_object(content))

        return await self._run(
            tier,
            system_prompt,
            user_prompt,
            _parse,
            max_tokens=max_tokens,
            temperature=temperature,
            retries=self.retry_policy.retries if retries is None else retries,
            fallback_retries=self.retry_policy.fallback_retries,
        )

    async def synthesize_raw(
        self,
        tier: SynthesisTier,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> SynthesisResult[str]:
        """Single-attempt free-text completion; local failure falls back to primary once."""
        return await self._run(
            tier,
            system_prompt,
            user_prompt,
            lambda content: content,
            max_tokens=max_tokens,
            temperature=temperature,
            retries=0,
            fallback_retries=0,
        )
