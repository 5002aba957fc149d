"""Incremental decoder for the gateway's server-sent event stream.

Each event line is ``data: <json>`` carrying an OpenAI-style chunk;
``data: [DONE]`` ends the stream. Text deltas are concatenated, tool-call
fragments are merged by their ``index`` (arguments arrive in pieces), and
the usage block of the final chunk is recorded. Malformed lines are
skipped.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from dandiset_assistant.conversation.models import FunctionCall, ToolCallRequest, Usage
from dandiset_assistant.llm.models import CompletionResult

logger = logging.getLogger(__name__)

_DATA_PREFIX = "data:"
_DONE = "[DONE]"


class CompletionStreamParser:
    """Stateful line parser for one completion stream."""

    def __init__(self) -> None:
        self._text: list[str] = []
        self._calls: dict[int, dict[str, Any]] = {}
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.finish_reason: str | None = None
        self.done = False

    @property
    def text(self) -> str:
        return "".join(self._text)

    def feed_line(self, line: str) -> str | None:
        """Consume one line; return the text delta it carried, if any."""
        line = line.strip()
        if not line.startswith(_DATA_PREFIX):
            return None
        data = line[len(_DATA_PREFIX):].strip()
        if data == _DONE:
            self.done = True
            return None
        try:
            chunk = json.loads(data)
        except (ValueError, RecursionError):
            logger.debug("Skipping malformed stream chunk: %.80s", data)
            return None
        if not isinstance(chunk, dict):
            return None

        usage = chunk.get("usage")
        if isinstance(usage, dict):
            try:
                prompt_tokens = int(usage.get("prompt_tokens") or 0)
                completion_tokens = int(usage.get("completion_tokens") or 0)
            except (TypeError, ValueError):
                logger.debug("Skipping stream chunk with malformed usage: %.80s", data)
                return None
            self.prompt_tokens = prompt_tokens
            self.completion_tokens = completion_tokens

        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        choice = choices[0]
        if choice.get("finish_reason"):
            self.finish_reason = choice["finish_reason"]
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return None

        for fragment in delta.get("tool_calls") or []:
            if isinstance(fragment, dict):
                self._merge_tool_call(fragment)

        content = delta.get("content")
        if isinstance(content, str) and content:
            self._text.append(content)
            return content
        return None

    def _merge_tool_call(self, fragment: dict) -> None:
        index = fragment.get("index")
        if not isinstance(index, int):
            index = len(self._calls)
        entry = self._calls.setdefault(index, {"id": "", "name": "", "arguments": []})
        if fragment.get("id"):
            entry["id"] = fragment["id"]
        function = fragment.get("function")
        if isinstance(function, dict):
            if function.get("name") and not entry["name"]:
                entry["name"] = function["name"]
            if function.get("arguments"):
                entry["arguments"].append(function["arguments"])

    def tool_calls(self) -> list[ToolCallRequest]:
        """Accumulated tool calls in index order (nameless fragments dropped)."""
        calls: list[ToolCallRequest] = []
        for index in sorted(self._calls):
            entry = self._calls[index]
            if not entry["name"]:
                logger.debug("Dropping tool call %d without a name", index)
                continue
            calls.append(
                ToolCallRequest(
                    id=entry["id"] or f"call_{index}",
                    function=FunctionCall(
                        name=entry["name"], arguments="".join(entry["arguments"])
                    ),
                )
            )
        return calls

    def result(self) -> CompletionResult:
        return CompletionResult(
            text=self.text,
            tool_calls=self.tool_calls(),
            usage=Usage(
                prompt_tokens=self.prompt_tokens,
                completion_tokens=self.completion_tokens,
            ),
            finish_reason=self.finish_reason,
        )
