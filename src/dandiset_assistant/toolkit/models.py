"""Toolkit data models for agent tool definitions.

Frozen dataclasses for tool definitions, handler outputs and execution
results, plus the narrow context protocol tools use to reach the document.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, Union

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import BaseModel

    from dandiset_assistant.conversation.models import ChatMessage
    from dandiset_assistant.document.operations import OperationResult, OperationType

logger = logging.getLogger(__name__)


class ToolExecutionContext(Protocol):
    """What a tool may see and do.

    Tools read the current and original documents and change the current
    one only through ``modify``.
    """

    @property
    def document(self) -> dict: ...

    @property
    def original(self) -> dict: ...

    def modify(
        self, operation: OperationType | str, path: str, value: Any = ...
    ) -> OperationResult: ...


@dataclass(frozen=True)
class ToolOutput:
    """What a handler returns: result text plus optional extra messages.

    ``new_messages`` are inserted into the conversation before the tool
    result message.
    """

    result: str
    new_messages: tuple[ChatMessage, ...] = ()


HandlerReturn = Union[ToolOutput, str]


@dataclass(frozen=True)
class ToolDefinition:
    """A single tool definition for LLM consumption.

    Attributes:
        name: Tool name (e.g. "propose_metadata_change").
        description: Short description sent to the model.
        parameters: JSON Schema dict describing tool parameters.
        params_model: Pydantic model that validates raw arguments; the
            handler receives the parsed instance.
        handler: ``handler(params, context)`` returning a ``ToolOutput``
            or plain result text.
        usage_guide: Longer guidance embedded in the system prompt.
    """

    name: str
    description: str
    parameters: dict
    params_model: type[BaseModel]
    handler: Callable[[Any, ToolExecutionContext], HandlerReturn]
    usage_guide: str = ""

    def to_openai(self) -> dict:
        """Convert to OpenAI function-calling format.

        Returns:
            Dict with "type": "function" and nested "function" object.
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ToolResult:
    """Structured result from executing a tool.

    Attributes:
        tool_name: Name of the tool that was executed.
        success: Whether execution succeeded.
        output: Result text on success.
        error: Error message on failure.
        new_messages: Extra conversation messages produced by the tool.
    """

    tool_name: str
    success: bool
    output: str = ""
    error: str = ""
    new_messages: tuple[ChatMessage, ...] = field(default_factory=tuple)

    @property
    def content(self) -> str:
        """Text for the tool-result message."""
        if self.success:
            return self.output
        return f'Error executing tool "{self.tool_name}": {self.error}'
