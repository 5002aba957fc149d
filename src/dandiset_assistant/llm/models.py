"""Completion request and result types exchanged with the gateway."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from dandiset_assistant.conversation.models import ChatMessage, ToolCallRequest, Usage


@dataclass(frozen=True)
class CompletionRequest:
    """One request to the completion gateway.

    Attributes:
        model: Gateway model identifier.
        system_message: System prompt, sent separately from the history.
        messages: Conversation history.
        tools: Tool declarations in OpenAI function-calling format.
        app: Application name reported to the gateway.
    """

    model: str
    system_message: str
    messages: Sequence[ChatMessage] = ()
    tools: Sequence[dict] = ()
    app: str = "dandiset-metadata-assistant"

    def to_payload(self) -> dict:
        return {
            "model": self.model,
            "systemMessage": self.system_message,
            "messages": [message.to_wire() for message in self.messages],
            "tools": list(self.tools),
            "app": self.app,
        }


@dataclass(frozen=True)
class CompletionResult:
    """Decoded outcome of one streamed completion.

    ``usage`` carries token counts only; cost is derived by the caller
    from the model catalog.
    """

    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: str | None = None
