"""ToolExecutor: dispatches tool calls to tool handlers.

Provides a single ``execute()`` method that looks up the tool by name,
validates the raw arguments against the tool's parameter model, invokes
its handler and returns a structured ``ToolResult``. It never raises.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from dandiset_assistant.toolkit.models import ToolOutput, ToolResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dandiset_assistant.toolkit.models import ToolDefinition, ToolExecutionContext

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Dispatches tool calls and returns structured results.

    Usage::

        executor = ToolExecutor(get_all_tools())
        result = executor.execute("fetch_url", {"url": "https://doi.org/..."}, document)
        if result.success:
            print(result.output)
        else:
            print(result.error)
    """

    def __init__(self, tools: Iterable[ToolDefinition]) -> None:
        self._tools: dict[str, ToolDefinition] = {tool.name: tool for tool in tools}

    def execute(
        self,
        tool_name: str,
        arguments: dict[str, Any] | str,
        context: ToolExecutionContext,
    ) -> ToolResult:
        """Execute a tool by name.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Argument dict, or the raw JSON text sent by the model.
            context: Document access handed to the tool.

        Returns:
            ToolResult with success/failure status and output/error.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=f"Unknown tool: {tool_name}",
            )

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except ValueError as exc:
                return ToolResult(
                    tool_name=tool_name,
                    success=False,
                    error=f"Arguments are not valid JSON: {exc}",
                )

        try:
            params = tool.params_model.model_validate(arguments)
        except ValidationError as exc:
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=f"Invalid arguments: {exc}",
            )

        try:
            output = tool.handler(params, context)
        except Exception as exc:
            logger.debug("Tool %s failed: %s", tool_name, exc, exc_info=True)
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=str(exc) or type(exc).__name__,
            )

        if isinstance(output, ToolOutput):
            return ToolResult(
                tool_name=tool_name,
                success=True,
                output=output.result,
                new_messages=tuple(output.new_messages),
            )
        return ToolResult(tool_name=tool_name, success=True, output=str(output))

    def available_tools(self) -> list[str]:
        """Return the names of all available tools."""
        return list(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def to_openai(self) -> list[dict]:
        """Tool declarations for the completion request."""
        return [tool.to_openai() for tool in self._tools.values()]
