"""Plain-text rendering of a conversation for summarization."""

from __future__ import annotations

from collections.abc import Iterable

from dandiset_assistant.conversation.models import (
    AssistantMessage,
    ChatMessage,
    ToolMessage,
    UserMessage,
)


def conversation_to_plain_text(messages: Iterable[ChatMessage]) -> str:
    """Render messages as a role-labelled transcript.

    Tool calls are listed with their raw argument JSON, and tool results
    are labelled with the tool name (or the call id when unnamed).
    """
    lines: list[str] = []
    for message in messages:
        if isinstance(message, UserMessage):
            lines.append("USER:")
            lines.append(message.content)
        elif isinstance(message, AssistantMessage):
            lines.append("ASSISTANT:")
            if message.content:
                lines.append(message.content)
            for call in message.tool_calls or []:
                lines.append(f"[Tool Call: {call.function.name}]")
                lines.append(call.function.arguments)
        elif isinstance(message, ToolMessage):
            lines.append(f"TOOL RESULT ({message.name or message.tool_call_id}):")
            lines.append(message.content)
        lines.append("")
    return "\n".join(lines)
