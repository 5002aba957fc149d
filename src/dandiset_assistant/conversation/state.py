"""Conversation state and its reducer.

``reduce`` is a pure function from (state, action) to a new state.
Only the session applies actions, so the message log has a single writer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Union

from dandiset_assistant.conversation.models import ChatMessage, Usage
from dandiset_assistant.llm.catalog import DEFAULT_MODEL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conversation:
    """Ordered message log, cumulative usage and selected model."""

    messages: tuple[ChatMessage, ...] = ()
    total_usage: Usage = field(default_factory=Usage)
    model: str = DEFAULT_MODEL

    def __len__(self) -> int:
        return len(self.messages)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddMessage:
    message: ChatMessage


@dataclass(frozen=True)
class SetModel:
    model: str


@dataclass(frozen=True)
class IncrementUsage:
    usage: Usage


@dataclass(frozen=True)
class Clear:
    """Reset to an empty conversation with the default model."""


@dataclass(frozen=True)
class RevertToIndex:
    """Keep messages ``0..index`` inclusive, dropping everything after."""

    index: int


@dataclass(frozen=True)
class ReplaceWithSummary:
    """Replace the whole log with one summary message."""

    message: ChatMessage
    preserved_usage: Usage


ConversationAction = Union[
    AddMessage, SetModel, IncrementUsage, Clear, RevertToIndex, ReplaceWithSummary
]


def reduce(state: Conversation, action: ConversationAction) -> Conversation:
    """Return the state that results from applying ``action``."""
    if isinstance(action, AddMessage):
        return replace(state, messages=(*state.messages, action.message))
    if isinstance(action, SetModel):
        return replace(state, model=action.model)
    if isinstance(action, IncrementUsage):
        return replace(state, total_usage=state.total_usage + action.usage)
    if isinstance(action, Clear):
        return Conversation()
    if isinstance(action, RevertToIndex):
        if action.index < -1:
            raise ValueError(f"Cannot revert to index {action.index}")
        return replace(state, messages=state.messages[: action.index + 1])
    if isinstance(action, ReplaceWithSummary):
        return replace(
            state,
            messages=(action.message,),
            total_usage=action.preserved_usage,
        )
    raise TypeError(f"Unknown conversation action: {type(action).__name__}")
