"""Agent loop: completions, tool execution, retry and cancellation."""

from dandiset_assistant.orchestrator.cancellation import CancellationToken
from dandiset_assistant.orchestrator.config import OrchestratorConfig
from dandiset_assistant.orchestrator.loop import AgentLoop, retry_notice
from dandiset_assistant.orchestrator.models import TurnOutcome, TurnResult

__all__ = [
    "AgentLoop",
    "CancellationToken",
    "OrchestratorConfig",
    "TurnOutcome",
    "TurnResult",
    "retry_notice",
]
