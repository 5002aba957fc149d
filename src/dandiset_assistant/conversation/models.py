"""Chat message models.

Messages are a discriminated union on ``role`` (user, assistant, tool),
validated through a module-level ``TypeAdapter``. Models are frozen so
conversation snapshots can share them safely.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

logger = logging.getLogger(__name__)


class Usage(BaseModel):
    """Token counters and derived cost (USD) of one or more completions."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    estimated_cost: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            estimated_cost=self.estimated_cost + other.estimated_cost,
        )


class FunctionCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    arguments: str = ""


class ToolCallRequest(BaseModel):
    """A tool call as emitted by the model (arguments still JSON text)."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class UserMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    content: str

    def to_wire(self) -> dict:
        return {"role": self.role, "content": self.content}


class AssistantMessage(BaseModel):
    """Assistant output, optionally requesting tool calls.

    ``model`` and ``usage`` are local annotations and are not sent back
    to the gateway.
    """

    model_config = ConfigDict(frozen=True)

    role: Literal["assistant"] = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[list[ToolCallRequest]] = None
    model: Optional[str] = None
    usage: Optional[Usage] = None

    def to_wire(self) -> dict:
        wire: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            wire["tool_calls"] = [call.model_dump(mode="json") for call in self.tool_calls]
        return wire


class ToolMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["tool"] = "tool"
    content: str
    tool_call_id: str
    name: Optional[str] = None

    def to_wire(self) -> dict:
        wire: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "tool_call_id": self.tool_call_id,
        }
        if self.name:
            wire["name"] = self.name
        return wire


ChatMessage = Annotated[
    Union[UserMessage, AssistantMessage, ToolMessage],
    Field(discriminator="role"),
]

_message_adapter = TypeAdapter(ChatMessage)
_message_list_adapter = TypeAdapter(list[ChatMessage])


def parse_message(data: dict) -> ChatMessage:
    """Validate a message dict into the matching model.

    Raises:
        pydantic.ValidationError: If the dict is not a valid message.
    """
    return _message_adapter.validate_python(data)


def parse_messages(data: list[dict]) -> list[ChatMessage]:
    return _message_list_adapter.validate_python(data)


def dump_messages(messages: list[ChatMessage]) -> list[dict]:
    """Serialize messages including local annotations (for transcripts)."""
    return _message_list_adapter.dump_python(list(messages), mode="json", exclude_none=True)
