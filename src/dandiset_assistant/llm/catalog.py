"""Model catalog: selectable models and their per-token prices."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "google/gemini-2.5-flash"


@dataclass(frozen=True)
class ModelInfo:
    """A selectable model.

    Attributes:
        model: Gateway model identifier.
        label: Short display name.
        prompt_cost: USD per million prompt tokens.
        completion_cost: USD per million completion tokens.
    """

    model: str
    label: str
    prompt_cost: float
    completion_cost: float


AVAILABLE_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo("openai/gpt-4.1-mini", "gpt-4.1-mini", 0.4, 1.6),
    ModelInfo("openai/gpt-5-mini", "gpt-5-mini", 0.25, 2),
    ModelInfo("openai/gpt-4o-mini", "gpt-4o-mini", 0.15, 0.6),
    ModelInfo("openai/gpt-4o", "gpt-4o", 2.5, 10),
    ModelInfo("google/gemini-2.5-flash", "gemini-2.5-flash", 0.3, 2.5),
    ModelInfo("anthropic/claude-3.5-sonnet", "claude-3.5-sonnet", 3, 15),
    ModelInfo("anthropic/claude-sonnet-4", "claude-sonnet-4", 3, 15),
    ModelInfo("moonshotai/kimi-k2-thinking", "kimi-k2-thinking", 0.47, 2),
)

# Models the gateway serves with its own key when the user has none.
CHEAP_MODELS: tuple[str, ...] = (
    "openai/gpt-4.1-mini",
    "openai/gpt-5-mini",
    "openai/gpt-4o-mini",
    "google/gemini-2.5-flash",
    "moonshotai/kimi-k2-thinking",
)


class ModelCatalog:
    """Price lookup over a set of models.

    Constructed explicitly (and injected into the agent loop) so tests can
    supply their own price table.
    """

    def __init__(
        self,
        models: tuple[ModelInfo, ...] | list[ModelInfo] = AVAILABLE_MODELS,
        cheap_models: tuple[str, ...] | list[str] = CHEAP_MODELS,
    ) -> None:
        self._models = {info.model: info for info in models}
        self._cheap = frozenset(cheap_models)

    def __contains__(self, model: str) -> bool:
        return model in self._models

    def get(self, model: str) -> ModelInfo | None:
        return self._models.get(model)

    def models(self) -> list[ModelInfo]:
        return list(self._models.values())

    def requires_user_key(self, model: str) -> bool:
        """True if the gateway will only serve ``model`` with the user's own key."""
        return model not in self._cheap

    def estimate_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        """Estimated USD cost; unknown models cost 0."""
        info = self._models.get(model)
        if info is None:
            return 0.0
        return (
            info.prompt_cost * prompt_tokens + info.completion_cost * completion_tokens
        ) / 1_000_000
