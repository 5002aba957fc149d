"""Conversation models, state reducer and transcript helpers."""

from dandiset_assistant.conversation.models import (
    AssistantMessage,
    ChatMessage,
    FunctionCall,
    ToolCallRequest,
    ToolMessage,
    Usage,
    UserMessage,
    dump_messages,
    parse_message,
    parse_messages,
)
from dandiset_assistant.conversation.state import (
    AddMessage,
    Clear,
    Conversation,
    ConversationAction,
    IncrementUsage,
    ReplaceWithSummary,
    RevertToIndex,
    SetModel,
    reduce,
)
from dandiset_assistant.conversation.suggestions import (
    ParsedSuggestions,
    has_suggestions,
    parse_suggestions,
)
from dandiset_assistant.conversation.summarize import conversation_to_plain_text

__all__ = [
    # Messages
    "ChatMessage",
    "UserMessage",
    "AssistantMessage",
    "ToolMessage",
    "ToolCallRequest",
    "FunctionCall",
    "Usage",
    "parse_message",
    "parse_messages",
    "dump_messages",
    # State
    "Conversation",
    "ConversationAction",
    "AddMessage",
    "SetModel",
    "IncrementUsage",
    "Clear",
    "RevertToIndex",
    "ReplaceWithSummary",
    "reduce",
    # Helpers
    "conversation_to_plain_text",
    "parse_suggestions",
    "has_suggestions",
    "ParsedSuggestions",
]
