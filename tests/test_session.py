"""Tests for AssistantSession: turns, abort, history edits, compression,
suggestions and proposals.

The completion client is scripted and every HTTP request goes through an
httpx MockTransport.
"""

from __future__ import annotations

import httpx
import pytest

from dandiset_assistant import AssistantSession
from dandiset_assistant.config import AssistantConfig
from dandiset_assistant.conversation.models import AssistantMessage, ToolMessage, Usage, UserMessage
from dandiset_assistant.conversation.state import Conversation
from dandiset_assistant.exceptions import AssistantError, ProposalError
from dandiset_assistant.llm import LLMConfigError, LLMHTTPError, LLMRateLimitError
from dandiset_assistant.llm.catalog import DEFAULT_MODEL, ModelCatalog
from dandiset_assistant.orchestrator import TurnOutcome
from dandiset_assistant.proposal import STALE_PROPOSAL_REASON, encode_proposal
from dandiset_assistant.schema import SchemaCache

from tests.conftest import ScriptedClient, make_metadata, text_result, tool_call_result

DOCS_URL = "https://docs.test/dandiset-metadata.md"
BASE_URL = "https://assistant.test/"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class Harness:
    """Builds sessions sharing one mocked HTTP client."""

    def __init__(self, schema: dict) -> None:
        self.schema = schema
        self.http_requests: list[httpx.Request] = []
        self.docs_available = True
        self.http = httpx.Client(transport=httpx.MockTransport(self._handle))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.http_requests.append(request)
        if str(request.url) == DOCS_URL and self.docs_available:
            return httpx.Response(200, text="# Best practices\nUse ORCIDs.")
        return httpx.Response(404)

    def session(self, script: list, load: bool = True, **config) -> AssistantSession:
        cache = SchemaCache(http_client=self.http)
        if self.schema is not None:
            cache.put(cache.default_version, self.schema)
        session = AssistantSession(
            AssistantConfig(docs_url=DOCS_URL, **config),
            http_client=self.http,
            client=ScriptedClient(script),
            schema_cache=cache,
            sleep=lambda seconds: None,
        )
        if load:
            session.load_document(make_metadata(), dandiset_id="000123")
        return session


@pytest.fixture()
def harness(dandiset_schema) -> Harness:
    return Harness(dandiset_schema)


def _cost(prompt_tokens: int, completion_tokens: int, model: str = DEFAULT_MODEL) -> float:
    return ModelCatalog().estimate_cost(model, prompt_tokens, completion_tokens)


# ===========================================================================
# Turns
# ===========================================================================


class TestSubmit:
    def test_completed_turn_is_committed(self, harness):
        session = harness.session([text_result("Your title looks fine.")])

        result = session.submit("Is my title OK?")

        assert result.outcome is TurnOutcome.COMPLETED
        assert result.succeeded
        assert [m.content for m in result.messages] == ["Your title looks fine."]
        log = session.conversation.messages
        assert isinstance(log[0], UserMessage) and log[0].content == "Is my title OK?"
        assert log[1].content == "Your title looks fine."
        assert session.conversation.total_usage.prompt_tokens == 10
        assert session.conversation.total_usage.estimated_cost == pytest.approx(_cost(10, 5))

    def test_request_carries_context(self, harness):
        session = harness.session([text_result("ok")])

        session.submit("hello")

        request = session._client.requests[0]
        assert "- Dandiset ID: 000123" in request.system_message
        assert "# Best practices" in request.system_message
        assert '"maxLength": 150' in request.system_message
        assert [m.content for m in request.messages] == ["hello"]
        assert request.model == DEFAULT_MODEL

    def test_tool_round_updates_document_and_usage(self, harness):
        session = harness.session([
            tool_call_result(("call_1", "propose_metadata_change", {
                "changes": [{"path": "keywords", "operation": "append", "value": "CA1"}],
            })),
            text_result("Added the keyword."),
        ])

        result = session.submit("Add CA1 as a keyword")

        assert [m.role for m in result.messages] == ["assistant", "tool", "assistant"]
        assert session.document.document["keywords"][-1] == "CA1"
        usage = session.conversation.total_usage
        assert (usage.prompt_tokens, usage.completion_tokens) == (30, 13)
        assert usage.estimated_cost == pytest.approx(_cost(20, 8) + _cost(10, 5))

    def test_failed_turn_keeps_error_message(self, harness):
        session = harness.session([LLMHTTPError(500, "boom")])

        result = session.submit("hi")

        assert result.outcome is TurnOutcome.FAILED
        assert result.error == "OpenRouter API error: boom"
        assert result.messages[-1].content == "Error: OpenRouter API error: boom"
        assert [m.role for m in session.conversation.messages] == ["user", "assistant"]
        assert not session.responding

    def test_abort_keeps_partial_messages(self, harness):
        session = harness.session([
            tool_call_result(("call_1", "propose_metadata_change", {
                "changes": [{"path": "name", "value": "New"}],
            }), ("call_2", "fetch_url", {"url": "https://doi.org/x"})),
            text_result("Continuing."),
        ])

        def on_partial(messages):
            if isinstance(messages[-1], ToolMessage):
                session.abort()

        result = session.submit("Rename it", on_partial=on_partial)

        assert result.outcome is TurnOutcome.ABORTED
        assert [m.role for m in result.messages] == ["assistant", "tool", "tool", "assistant"]
        assert result.messages[2].content == 'Error executing tool "fetch_url": Request aborted'
        assert result.messages[-1].content == "Request aborted"
        assert len(session.conversation) == 5
        assert session.document.document["name"] == "New"

        # the next turn replays every tool call paired with its result
        session.submit("continue")
        replayed = session._client.requests[-1].messages
        call_ids = [
            call.id
            for m in replayed
            if isinstance(m, AssistantMessage)
            for call in m.tool_calls or []
        ]
        result_ids = [m.tool_call_id for m in replayed if isinstance(m, ToolMessage)]
        assert call_ids == result_ids == ["call_1", "call_2"]

    def test_abort_during_retry_wait(self, harness):
        session = harness.session([LLMRateLimitError(), text_result("never")])

        result = session.submit("hi", on_partial=lambda messages: session.abort())

        assert result.outcome is TurnOutcome.ABORTED
        assert [m.content for m in result.messages] == ["Request aborted"]

    def test_second_submit_while_responding_is_refused(self, harness):
        session = harness.session([text_result("first")])
        refused: list[str] = []

        def on_partial(messages):
            assert session.responding
            with pytest.raises(AssistantError, match="already in progress"):
                session.submit("second")
            refused.append("yes")

        session.submit("first", on_partial=on_partial)

        assert refused
        assert len(session.conversation) == 2

    def test_abort_without_turn(self, harness):
        assert harness.session([]).abort() is False


# ===========================================================================
# History
# ===========================================================================


class TestHistory:
    def test_revert_to_message(self, harness):
        session = harness.session([text_result("a"), text_result("b")])
        session.submit("one")
        session.submit("two")

        session.revert_to_message(1)

        assert [m.content for m in session.conversation.messages] == ["one", "a"]

    def test_clear_resets_conversation(self, harness):
        session = harness.session([text_result("a")], openrouter_api_key="sk-or-x")
        session.set_model("anthropic/claude-sonnet-4")
        session.submit("one")

        session.clear()

        assert session.conversation == Conversation()

    def test_clear_keeps_configured_default_model(self, harness):
        session = harness.session(
            [text_result("a")],
            default_model="openai/gpt-4o-mini",
            openrouter_api_key="sk-or-x",
        )
        session.set_model("anthropic/claude-sonnet-4")
        session.submit("one")

        session.clear()

        assert session.conversation == Conversation(model="openai/gpt-4o-mini")

    def test_set_model_requires_key_for_expensive_models(self, harness):
        session = harness.session([])

        with pytest.raises(LLMConfigError):
            session.set_model("anthropic/claude-sonnet-4")
        session.set_model("openai/gpt-4o-mini")

        assert session.conversation.model == "openai/gpt-4o-mini"

    def test_compress_replaces_log_and_keeps_usage(self, harness):
        session = harness.session([text_result("a"), text_result("Summary of work", 40, 10)])
        session.submit("one")
        before = session.conversation.total_usage

        summary = session.compress()

        assert summary.content == "Summary of work"
        assert session.conversation.messages == (summary,)
        assert session.conversation.total_usage == before + summary.usage
        request = session._client.requests[-1]
        assert request.tools == ()
        assert "Here is the full conversation" in request.messages[0].content

    def test_compress_empty_conversation(self, harness):
        assert harness.session([]).compress() is None


# ===========================================================================
# Prompt context
# ===========================================================================


class TestContext:
    def test_docs_fetched_once(self, harness):
        session = harness.session([])

        assert session.fetch_docs().startswith("# Best practices")
        session.fetch_docs()

        assert [str(r.url) for r in harness.http_requests].count(DOCS_URL) == 1

    def test_prompt_without_docs_or_schema(self):
        harness = Harness(None)
        harness.docs_available = False
        session = harness.session([])

        prompt = session.system_prompt()

        assert session.fetch_docs() is None
        assert "(Documentation not yet loaded)" in prompt
        assert "(Schema not yet loaded)" in prompt


# ===========================================================================
# Suggestions
# ===========================================================================


class TestSuggestions:
    def test_initial_suggestions(self, harness):
        session = harness.session([text_result('```suggestions\n["Add keywords", "Check license"]\n```')])

        assert session.initial_suggestions() == ["Add keywords", "Check license"]
        assert session.current_suggestions() == ["Add keywords", "Check license"]
        assert session.conversation.total_usage == Usage()

    def test_initial_suggestions_need_a_dandiset(self, harness):
        session = harness.session([], load=False)
        assert session.initial_suggestions() == []

    def test_initial_suggestions_failure_is_empty(self, harness):
        session = harness.session([LLMHTTPError(500, "down")])
        assert session.initial_suggestions() == []

    def test_suggestions_from_last_reply(self, harness):
        session = harness.session([
            text_result('Done.\n```suggestions\n["Review contributors"]\n```'),
            text_result("No suggestions here."),
        ])

        session.submit("one")
        assert session.current_suggestions() == ["Review contributors"]

        session.submit("two")
        assert session.current_suggestions() == []


# ===========================================================================
# Proposals
# ===========================================================================


class TestProposals:
    def _edited(self, harness) -> AssistantSession:
        session = harness.session([])
        session.document.modify("append", "keywords", "CA1")
        return session

    def test_link_requires_base_url(self, harness):
        with pytest.raises(ProposalError):
            self._edited(harness).proposal_link()

    def test_link_requires_dandiset(self, harness):
        with pytest.raises(ProposalError):
            harness.session([], load=False).proposal_link(BASE_URL)

    def test_link_uses_configured_app_url(self, harness):
        session = harness.session([], app_url=BASE_URL)
        assert session.proposal_link() is None
        session.document.modify("append", "keywords", "CA1")
        assert session.proposal_link().startswith(BASE_URL + "?dandiset=000123&proposal=")

    def test_review_applies_clean_proposal(self, harness):
        link = self._edited(harness).proposal_link(BASE_URL)
        reviewer = harness.session([])

        validation = reviewer.review_proposal(link)

        assert validation.ok
        assert reviewer.document.document["keywords"][-1] == "CA1"
        assert [c.path for c in reviewer.document.changes()] == ["keywords[2]"]

    def test_review_accepts_bare_payload(self, harness):
        original = make_metadata()
        modified = dict(original, name="Renamed")
        reviewer = harness.session([])

        assert reviewer.review_proposal(encode_proposal(original, modified)).ok
        assert reviewer.document.document["name"] == "Renamed"

    def test_review_rejects_other_dandiset(self, harness):
        link = self._edited(harness).proposal_link(BASE_URL)
        reviewer = harness.session([], load=False)
        reviewer.load_document(make_metadata(), dandiset_id="000999")

        validation = reviewer.review_proposal(link)

        assert not validation.ok
        assert "000123" in validation.reason
        assert not reviewer.document.has_changes

    def test_review_rejects_stale_proposal(self, harness):
        link = self._edited(harness).proposal_link(BASE_URL)
        reviewer = harness.session([], load=False)
        reviewer.load_document(dict(make_metadata(), name="Changed upstream"), dandiset_id="000123")

        validation = reviewer.review_proposal(link)

        assert validation.reason == STALE_PROPOSAL_REASON
        assert not reviewer.document.has_changes

    def test_review_rejects_garbage(self, harness):
        validation = harness.session([]).review_proposal(BASE_URL + "?proposal=garbage")
        assert validation.reason == "Invalid or corrupted proposal"


def test_context_manager_closes(harness):
    with harness.session([]) as session:
        assert not session.responding
