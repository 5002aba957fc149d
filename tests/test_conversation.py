"""Tests for conversation messages, the state reducer and transcript helpers."""

from __future__ import annotations

import pydantic
import pytest

from dandiset_assistant.conversation import (
    AddMessage,
    AssistantMessage,
    Clear,
    Conversation,
    FunctionCall,
    IncrementUsage,
    ParsedSuggestions,
    ReplaceWithSummary,
    RevertToIndex,
    SetModel,
    ToolCallRequest,
    ToolMessage,
    Usage,
    UserMessage,
    conversation_to_plain_text,
    dump_messages,
    has_suggestions,
    parse_message,
    parse_messages,
    parse_suggestions,
    reduce,
)
from dandiset_assistant.llm.catalog import DEFAULT_MODEL


def _call(call_id: str = "call_1", name: str = "fetch_url", arguments: str = '{"url": "x"}'):
    return ToolCallRequest(id=call_id, function=FunctionCall(name=name, arguments=arguments))


def _log() -> tuple:
    return (
        UserMessage(content="Hi"),
        AssistantMessage(content=None, tool_calls=[_call()]),
        ToolMessage(content="page text", tool_call_id="call_1", name="fetch_url"),
        AssistantMessage(content="Done", usage=Usage(prompt_tokens=3, completion_tokens=2)),
    )


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestMessages:
    def test_parse_dispatches_on_role(self):
        assert isinstance(parse_message({"role": "user", "content": "x"}), UserMessage)
        assert isinstance(parse_message({"role": "assistant", "content": None}), AssistantMessage)
        tool = parse_message({"role": "tool", "content": "r", "tool_call_id": "c"})
        assert isinstance(tool, ToolMessage)

    def test_parse_rejects_unknown_role(self):
        with pytest.raises(pydantic.ValidationError):
            parse_message({"role": "system", "content": "x"})

    def test_dump_and_parse_round_trip(self):
        messages = list(_log())
        dumped = dump_messages(messages)

        assert "tool_calls" not in dumped[0]
        assert dumped[3]["usage"]["prompt_tokens"] == 3
        assert parse_messages(dumped) == messages

    def test_wire_format_drops_local_annotations(self):
        message = AssistantMessage(content="x", model="m", usage=Usage(prompt_tokens=1))
        assert message.to_wire() == {"role": "assistant", "content": "x"}

        with_calls = AssistantMessage(content=None, tool_calls=[_call()]).to_wire()
        assert with_calls["content"] is None
        assert with_calls["tool_calls"] == [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "fetch_url", "arguments": '{"url": "x"}'},
        }]

    def test_tool_wire_name_is_optional(self):
        assert "name" not in ToolMessage(content="r", tool_call_id="c").to_wire()

    def test_usage_addition(self):
        total = Usage(prompt_tokens=1, completion_tokens=2, estimated_cost=0.5) + Usage(
            prompt_tokens=10, completion_tokens=20, estimated_cost=0.25
        )
        assert total == Usage(prompt_tokens=11, completion_tokens=22, estimated_cost=0.75)
        assert total.total_tokens == 33


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


class TestReducer:
    def test_add_message_returns_new_state(self):
        state = Conversation()
        message = UserMessage(content="Hi")

        new_state = reduce(state, AddMessage(message))

        assert new_state.messages == (message,)
        assert state.messages == ()

    def test_set_model(self):
        assert reduce(Conversation(), SetModel("openai/gpt-4o")).model == "openai/gpt-4o"

    def test_increment_usage(self):
        state = reduce(Conversation(), IncrementUsage(Usage(prompt_tokens=5)))
        state = reduce(state, IncrementUsage(Usage(prompt_tokens=7, completion_tokens=1)))
        assert state.total_usage == Usage(prompt_tokens=12, completion_tokens=1)

    def test_clear_resets_model_and_usage(self):
        state = Conversation(messages=_log(), total_usage=Usage(prompt_tokens=9), model="x/y")

        cleared = reduce(state, Clear())

        assert cleared == Conversation()
        assert cleared.model == DEFAULT_MODEL

    @pytest.mark.parametrize(("index", "kept"), [(-1, 0), (0, 1), (2, 3), (3, 4), (10, 4)])
    def test_revert_keeps_prefix(self, index, kept):
        state = Conversation(messages=_log())
        assert len(reduce(state, RevertToIndex(index))) == kept

    def test_revert_rejects_negative_index(self):
        with pytest.raises(ValueError):
            reduce(Conversation(messages=_log()), RevertToIndex(-2))

    def test_revert_keeps_usage_and_model(self):
        state = Conversation(messages=_log(), total_usage=Usage(prompt_tokens=4), model="x/y")
        reverted = reduce(state, RevertToIndex(0))
        assert reverted.total_usage == Usage(prompt_tokens=4)
        assert reverted.model == "x/y"

    def test_replace_with_summary(self):
        state = Conversation(messages=_log(), total_usage=Usage(prompt_tokens=4))
        summary = AssistantMessage(content="Summary")

        new_state = reduce(state, ReplaceWithSummary(summary, Usage(prompt_tokens=9)))

        assert new_state.messages == (summary,)
        assert new_state.total_usage == Usage(prompt_tokens=9)

    def test_unknown_action(self):
        with pytest.raises(TypeError, match="Unknown conversation action"):
            reduce(Conversation(), object())


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


class TestPlainText:
    def test_transcript(self):
        text = conversation_to_plain_text(_log())

        assert text.splitlines() == [
            "USER:",
            "Hi",
            "",
            "ASSISTANT:",
            "[Tool Call: fetch_url]",
            '{"url": "x"}',
            "",
            "TOOL RESULT (fetch_url):",
            "page text",
            "",
            "ASSISTANT:",
            "Done",
        ]

    def test_unnamed_tool_result_uses_call_id(self):
        text = conversation_to_plain_text([ToolMessage(content="r", tool_call_id="call_9")])
        assert text.startswith("TOOL RESULT (call_9):")


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


class TestSuggestions:
    def test_block_is_extracted_and_stripped(self):
        content = (
            "Here is my review.\n\n"
            '```suggestions\n["Suggest keywords", "Check the license"]\n```\n'
        )

        parsed = parse_suggestions(content)

        assert parsed == ParsedSuggestions(
            cleaned_content="Here is my review.",
            suggestions=["Suggest keywords", "Check the license"],
        )
        assert has_suggestions(content)

    def test_no_block(self):
        assert parse_suggestions("Plain reply") == ParsedSuggestions("Plain reply")
        assert not has_suggestions("Plain reply")

    def test_malformed_block_is_stripped_without_suggestions(self):
        parsed = parse_suggestions("Text\n```suggestions\nnot json\n```")
        assert parsed.cleaned_content == "Text"
        assert parsed.suggestions == []

    def test_non_string_items_are_ignored(self):
        assert parse_suggestions('```suggestions\n["a", 2]\n```').suggestions == []

    def test_unterminated_block_is_left_alone(self):
        content = 'Text\n```suggestions\n["a"]'
        assert parse_suggestions(content).cleaned_content == content
        assert not has_suggestions(content)
