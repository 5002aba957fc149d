"""Shared test fixtures for the dandiset assistant.

Provides sample metadata, SSE stream builders and a scripted completion
client for agent-loop tests.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from dandiset_assistant.conversation.models import FunctionCall, ToolCallRequest, Usage
from dandiset_assistant.document.metadata import MetadataDocument
from dandiset_assistant.llm.models import CompletionResult


def make_metadata() -> dict[str, Any]:
    """A small but realistic dandiset metadata document."""
    return {
        "id": "DANDI:000123/draft",
        "identifier": "DANDI:000123",
        "schemaKey": "Dandiset",
        "schemaVersion": "0.7.0",
        "name": "Hippocampal recordings in freely moving mice",
        "description": "Extracellular recordings from CA1.",
        "keywords": ["hippocampus", "place cells"],
        "license": ["spdx:CC-BY-4.0"],
        "contributor": [
            {
                "schemaKey": "Person",
                "name": "Doe, Jane",
                "identifier": "0000-0001-2345-6789",
                "roleName": ["dcite:Author"],
            },
            {
                "schemaKey": "Organization",
                "name": "Example Institute",
                "roleName": ["dcite:Sponsor"],
            },
        ],
        "about": [],
    }


def sse_body(
    *,
    text_chunks: list[str] | None = None,
    tool_calls: list[dict[str, Any]] | None = None,
    usage: tuple[int, int] | None = (10, 5),
    done: bool = True,
) -> bytes:
    """Build a gateway SSE stream.

    ``tool_calls`` entries are ``{"id", "name", "arguments"}``; arguments are
    split in two fragments to exercise merging.
    """
    lines: list[str] = []
    for chunk in text_chunks or []:
        lines.append(json.dumps({"choices": [{"delta": {"content": chunk}}]}))
    for index, call in enumerate(tool_calls or []):
        args = call.get("arguments", "")
        half = len(args) // 2
        lines.append(json.dumps({"choices": [{"delta": {"tool_calls": [{
            "index": index,
            "id": call["id"],
            "type": "function",
            "function": {"name": call["name"], "arguments": args[:half]},
        }]}}]}))
        lines.append(json.dumps({"choices": [{"delta": {"tool_calls": [{
            "index": index,
            "function": {"arguments": args[half:]},
        }]}}]}))
    final: dict[str, Any] = {"choices": [{"delta": {}, "finish_reason": "stop"}]}
    if usage is not None:
        final["usage"] = {"prompt_tokens": usage[0], "completion_tokens": usage[1]}
    lines.append(json.dumps(final))
    body = "".join(f"data: {line}\n\n" for line in lines)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


def sse_response(**kwargs: Any) -> httpx.Response:
    return httpx.Response(
        200, content=sse_body(**kwargs), headers={"Content-Type": "text/event-stream"}
    )


def text_result(text: str, prompt_tokens: int = 10, completion_tokens: int = 5) -> CompletionResult:
    return CompletionResult(
        text=text,
        usage=Usage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def tool_call_result(*calls: tuple[str, str, dict | str], text: str = "") -> CompletionResult:
    """CompletionResult requesting ``(id, name, arguments)`` tool calls."""
    return CompletionResult(
        text=text,
        tool_calls=[
            ToolCallRequest(
                id=call_id,
                function=FunctionCall(
                    name=name,
                    arguments=args if isinstance(args, str) else json.dumps(args),
                ),
            )
            for call_id, name, args in calls
        ],
        usage=Usage(prompt_tokens=20, completion_tokens=8),
    )


class ScriptedClient:
    """Completion client stand-in that replays scripted results.

    Each script entry is a CompletionResult to return or an exception to
    raise. Requests are recorded for inspection.
    """

    def __init__(self, script: list[Any]) -> None:
        self._script = list(script)
        self.requests: list[Any] = []

    def send(self, request, on_partial_text=None, cancel_token=None):
        self.requests.append(request)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        step = self._script.pop(0)
        if isinstance(step, BaseException):
            raise step
        if on_partial_text is not None and step.text:
            on_partial_text(step.text)
        return step

    def close(self) -> None:
        pass


@pytest.fixture
def metadata() -> dict[str, Any]:
    return make_metadata()


@pytest.fixture
def document(metadata) -> MetadataDocument:
    return MetadataDocument(metadata, dandiset_id="000123")


@pytest.fixture
def dandiset_schema() -> dict[str, Any]:
    """Trimmed-down dandiset JSON Schema used for validation tests."""
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "required": ["name", "description"],
        "properties": {
            "id": {"type": "string", "readOnly": True},
            "identifier": {"type": "string", "readOnly": True},
            "name": {"type": "string", "maxLength": 150},
            "description": {"type": "string"},
            "keywords": {"type": "array", "items": {"type": "string"}},
            "license": {
                "type": "array",
                "items": {"enum": ["spdx:CC0-1.0", "spdx:CC-BY-4.0"]},
            },
            "contributor": {"type": "array", "items": {"type": "object"}},
            "about": {"type": "array"},
        },
    }
