"""Agent loop configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dandiset_assistant.config import AssistantConfig


@dataclass
class OrchestratorConfig:
    """Knobs for the agent loop.

    Mutable dataclass -- callers may adjust settings between runs.

    Attributes:
        max_retries: Retries after the first attempt for transient failures.
        retry_base_delay: Seconds before the first retry; doubles per retry.
        max_turns: Upper bound on completions within one run.
        app_name: Application name reported to the gateway.
    """

    max_retries: int = 3
    retry_base_delay: float = 10.0
    max_turns: int = 25
    app_name: str = "dandiset-metadata-assistant"

    @classmethod
    def from_assistant_config(cls, config: AssistantConfig) -> OrchestratorConfig:
        return cls(
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
            max_turns=config.max_turns,
            app_name=config.app_name,
        )
