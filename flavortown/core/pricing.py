"""
Model pricing and token accounting.

Prices are USD per one million tokens. The table is fixed; models that are
not listed price at zero so local or experimental models never block a run.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..schemas.base import TokenUsage


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for one model."""

    input_per_million: float
    output_per_million: float
    note: str = ""


MODEL_PRICING: dict[str, ModelPricing] = {
    "gpt-4o-mini": ModelPricing(0.075, 0.30, note="flex tier, 50% off standard"),
    "gpt-4.1-mini": ModelPricing(0.10, 0.40),
    "qwen3-8b": ModelPricing(0.0, 0.0, note="local"),
}

DEFAULT_MODEL = "gpt-4o-mini"

_FREE = ModelPricing(0.0, 0.0)


def get_model_pricing(model: str) -> ModelPricing:
    """Return pricing for *model*, or zero pricing when it is not listed."""
    return MODEL_PRICING.get(model, _FREE)


def estimate_token_cost(prompt_tokens: int, completion_tokens: int, model: str = DEFAULT_MODEL) -> float:
    """Convert a prompt/completion split into an estimated USD cost."""
    pricing = get_model_pricing(model)
    return (
        prompt_tokens / 1_000_000 * pricing.input_per_million
        + completion_tokens / 1_000_000 * pricing.output_per_million
    )


def estimate_usage_cost(usage: TokenUsage, model: str = DEFAULT_MODEL) -> float:
    return estimate_token_cost(usage.prompt_tokens, usage.completion_tokens, model)


class TokenTracker:
    """Accumulates token usage for one workflow run.

    Owned by the workflow that resets it, so two workflows in the same
    process never see each other's totals.
    """

    def __init__(self) -> None:
        self._usage = TokenUsage()

    def track(self, usage: TokenUsage | None) -> None:
        if usage is None:
            return
        self._usage = self._usage + usage

    @property
    def total(self) -> TokenUsage:
        return self._usage.model_copy()

    def estimate_cost(self, model: str = DEFAULT_MODEL) -> float:
        return estimate_usage_cost(self._usage, model)

    def reset(self) -> None:
        self._usage = TokenUsage()
