"""AssistantSession -- entry point wiring conversation, agent loop and document.

One session edits one dandiset's metadata. It owns the conversation
state, the working copy of the metadata, the tool set and the agent
loop, and exposes the operations a front end needs: submit, abort,
revert, clear, compress, suggestions and proposal links.

Usage::

    with AssistantSession(AssistantConfig.from_env()) as session:
        session.load_document(metadata, dandiset_id="000123")
        result = session.submit("Suggest keywords for this dandiset")
        print(result.messages[-1].content)
        print(session.proposal_link("https://example.org/assistant"))
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

import httpx

from dandiset_assistant.config import AssistantConfig
from dandiset_assistant.conversation.models import AssistantMessage, UserMessage
from dandiset_assistant.conversation.state import (
    AddMessage,
    Clear,
    Conversation,
    IncrementUsage,
    ReplaceWithSummary,
    RevertToIndex,
    SetModel,
    reduce,
)
from dandiset_assistant.conversation.suggestions import parse_suggestions
from dandiset_assistant.document.metadata import MetadataDocument
from dandiset_assistant.exceptions import (
    AssistantError,
    ProposalError,
    SchemaUnavailableError,
    TurnCancelledError,
    TurnError,
)
from dandiset_assistant.llm.catalog import ModelCatalog
from dandiset_assistant.llm.client import CompletionClient
from dandiset_assistant.llm.errors import LLMClientError, LLMConfigError
from dandiset_assistant.llm.models import CompletionRequest
from dandiset_assistant.orchestrator.cancellation import CancellationToken
from dandiset_assistant.orchestrator.config import OrchestratorConfig
from dandiset_assistant.orchestrator.loop import AgentLoop
from dandiset_assistant.orchestrator.models import TurnOutcome, TurnResult
from dandiset_assistant.proposal.codec import (
    ProposalValidation,
    decode_proposal,
    validate_proposal,
)
from dandiset_assistant.proposal.link import create_proposal_link, parse_proposal_from_url
from dandiset_assistant.prompts.suggestions import INITIAL_SUGGESTIONS_PROMPT
from dandiset_assistant.prompts.summarize import build_summarization_prompt
from dandiset_assistant.prompts.system import build_system_prompt
from dandiset_assistant.schema.cache import SchemaCache
from dandiset_assistant.schema.validate import MetadataValidator
from dandiset_assistant.toolkit.definitions import get_all_tools
from dandiset_assistant.toolkit.executor import ToolExecutor

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from dandiset_assistant.conversation.models import ChatMessage

logger = logging.getLogger(__name__)

ABORTED_MESSAGE = "Request aborted"


class AssistantSession:
    """Conversation plus metadata working copy for one dandiset.

    Turns are serialized: a second ``submit`` while one is running raises.
    ``abort`` may be called from any thread; ``revert_to_message`` and
    ``clear`` abort the running turn first and then wait for it to unwind.

    Args:
        config: Session settings. Defaults to ``AssistantConfig()``.
        http_client: Shared client for gateway, schema, docs and tool
            requests. Created (and closed by ``close``) when omitted.
        client: Completion client override (tests pass a mocked one).
        schema_cache: Schema cache override.
        catalog: Model price table override.
        sleep: Backoff sleep override for the agent loop.
    """

    def __init__(
        self,
        config: AssistantConfig | None = None,
        *,
        http_client: httpx.Client | None = None,
        client: CompletionClient | None = None,
        schema_cache: SchemaCache | None = None,
        catalog: ModelCatalog | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config if config is not None else AssistantConfig()
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=self.config.request_timeout)
        self._client = client or CompletionClient.from_config(self.config, http_client=self._http)
        self._catalog = catalog if catalog is not None else ModelCatalog()
        self._schema_cache = schema_cache or SchemaCache(
            self.config.schema_base_url,
            self.config.schema_version,
            http_client=self._http,
        )
        self.validator = MetadataValidator(self._schema_cache)
        self.tools = get_all_tools(http_client=self._http, validator=self.validator)
        self._loop = AgentLoop(
            self._client,
            ToolExecutor(self.tools),
            OrchestratorConfig.from_assistant_config(self.config),
            self._catalog,
            sleep=sleep,
        )
        self.document = MetadataDocument()
        self._conversation = Conversation(model=self.config.default_model)
        self._state_lock = threading.RLock()
        self._turn_lock = threading.Lock()
        self._token: CancellationToken | None = None
        self._docs: str | None = None
        self._initial_suggestions: list[str] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def responding(self) -> bool:
        return self._turn_lock.locked()

    def _dispatch(self, action: object) -> None:
        with self._state_lock:
            self._conversation = reduce(self._conversation, action)

    def _commit(self, messages: Sequence[ChatMessage]) -> None:
        """Append messages, accumulating each assistant message's usage."""
        with self._state_lock:
            for message in messages:
                self._dispatch(AddMessage(message))
                if isinstance(message, AssistantMessage) and message.usage is not None:
                    self._dispatch(IncrementUsage(message.usage))

    def load_document(
        self, metadata: dict, dandiset_id: str | None = None, version: str = "draft"
    ) -> None:
        """Load freshly fetched metadata; discards local modifications."""
        self.document.load(metadata, dandiset_id=dandiset_id, version=version)
        self._initial_suggestions = []
        logger.info("Loaded metadata for dandiset %s (%s)", dandiset_id, version)

    # ------------------------------------------------------------------
    # Prompt context
    # ------------------------------------------------------------------

    def fetch_docs(self) -> str | None:
        """Fetch the metadata best-practice docs once; None if unreachable."""
        if self._docs is None:
            try:
                response = self._http.get(self.config.docs_url)
                response.raise_for_status()
                self._docs = response.text
            except httpx.HTTPError as exc:
                logger.warning("Failed to fetch metadata docs: %s", exc)
        return self._docs

    def system_prompt(self) -> str:
        try:
            schema = self._schema_cache.get()
        except SchemaUnavailableError as exc:
            logger.warning("Building prompt without schema: %s", exc)
            schema = None
        return build_system_prompt(
            dandiset_id=self.document.dandiset_id,
            version=self.document.version,
            original=self.document.original,
            modified=self.document.document,
            docs=self.fetch_docs(),
            schema=schema,
            tools=self.tools,
        )

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def submit(
        self,
        content: str,
        on_partial: Callable[[list[ChatMessage]], None] | None = None,
    ) -> TurnResult:
        """Send a user message and run the agent until it answers.

        On abort or failure the partial messages produced so far are kept
        in the log, followed by an assistant message describing the error.

        Raises:
            AssistantError: If another turn is already running.
        """
        if not self._turn_lock.acquire(blocking=False):
            raise AssistantError("A response is already in progress")
        try:
            token = CancellationToken()
            self._token = token
            self._dispatch(AddMessage(UserMessage(content=content)))
            conversation = self._conversation
            try:
                messages = self._loop.run(
                    conversation,
                    self.system_prompt(),
                    self.document,
                    on_partial=on_partial,
                    cancel_token=token,
                )
            except TurnError as exc:
                cancelled = isinstance(exc, TurnCancelledError)
                notice = ABORTED_MESSAGE if cancelled else f"Error: {exc}"
                added = [
                    *exc.partial_messages,
                    AssistantMessage(content=notice, model=conversation.model),
                ]
                self._commit(added)
                if not cancelled:
                    logger.error("Turn failed: %s", exc)
                return TurnResult(
                    messages=added,
                    outcome=TurnOutcome.ABORTED if cancelled else TurnOutcome.FAILED,
                    error=str(exc),
                )
            self._commit(messages)
            return TurnResult(messages=messages)
        finally:
            self._token = None
            self._turn_lock.release()

    def abort(self) -> bool:
        """Cancel the running turn, if any. Returns True if one was running."""
        token = self._token
        if token is None:
            return False
        token.cancel()
        return True

    def revert_to_message(self, index: int) -> None:
        """Keep messages ``0..index`` and drop the rest (index -1 empties the log)."""
        self.abort()
        with self._turn_lock:
            self._dispatch(RevertToIndex(index))

    def clear(self) -> None:
        """Empty the conversation and return to the configured default model."""
        self.abort()
        with self._turn_lock:
            self._dispatch(Clear())
            self._dispatch(SetModel(self.config.default_model))

    def set_model(self, model: str) -> None:
        """Select the model for subsequent turns.

        Raises:
            LLMConfigError: If the model needs a user API key and none is set.
        """
        if self._catalog.requires_user_key(model) and not self.config.openrouter_api_key:
            raise LLMConfigError(
                f"Model {model} requires an OpenRouter API key "
                "(set DANDISET_ASSISTANT_OPENROUTER_API_KEY)"
            )
        if model not in self._catalog:
            logger.warning("Model %s has no price entry; its cost is reported as 0", model)
        self._dispatch(SetModel(model))

    # ------------------------------------------------------------------
    # Compression and suggestions
    # ------------------------------------------------------------------

    def _tool_less_request(self, prompt: str) -> CompletionRequest:
        return CompletionRequest(
            model=self._conversation.model,
            system_message=self.system_prompt(),
            messages=[UserMessage(content=prompt)],
            tools=(),
            app=self.config.app_name,
        )

    def compress(self) -> AssistantMessage | None:
        """Replace the conversation with a model-written summary.

        Cumulative usage is preserved and the summary's own usage is added.

        Returns:
            The summary message, or None if there was nothing to compress
            or the request was aborted.
        """
        with self._turn_lock:
            if not self._conversation.messages:
                return None
            token = CancellationToken()
            self._token = token
            try:
                request = self._tool_less_request(
                    build_summarization_prompt(self._conversation.messages)
                )
                result = self._loop.complete(request, token)
            except TurnCancelledError:
                logger.info("Compression aborted")
                return None
            finally:
                self._token = None
            usage = self._loop.price(request.model, result.usage)
            summary = AssistantMessage(content=result.text, model=request.model, usage=usage)
            self._dispatch(
                ReplaceWithSummary(summary, self._conversation.total_usage + usage)
            )
            logger.info("Compressed conversation into %d chars", len(result.text))
            return summary

    def initial_suggestions(self) -> list[str]:
        """Ask the model for starter prompts for the loaded dandiset.

        Failures are logged and yield an empty list.
        """
        if not self.document.dandiset_id or self._conversation.messages:
            return []
        try:
            result = self._loop.complete(self._tool_less_request(INITIAL_SUGGESTIONS_PROMPT))
        except (LLMClientError, TurnError) as exc:
            logger.warning("Failed to fetch initial suggestions: %s", exc)
            return []
        self._initial_suggestions = parse_suggestions(result.text).suggestions
        return list(self._initial_suggestions)

    def current_suggestions(self) -> list[str]:
        """Suggestions from the last assistant message with content.

        Falls back to the initial suggestions only while the log is empty.
        """
        for message in reversed(self._conversation.messages):
            if isinstance(message, AssistantMessage) and message.content:
                return parse_suggestions(message.content).suggestions
        if self._conversation.messages:
            return []
        return list(self._initial_suggestions)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def proposal_link(self, base_url: str | None = None) -> str | None:
        """Link carrying the pending modifications, or None if there are none.

        Raises:
            ProposalError: If no base URL is given or configured, or no
                dandiset is loaded.
        """
        base = base_url or self.config.app_url
        if not base:
            raise ProposalError("No base URL for proposal links (set app_url)")
        if not self.document.dandiset_id:
            raise ProposalError("No dandiset loaded")
        return create_proposal_link(
            base, self.document.dandiset_id, self.document.original, self.document.document
        )

    def review_proposal(self, link_or_payload: str) -> ProposalValidation:
        """Check a received proposal against the loaded original and stage it.

        Accepts a full review link or the bare encoded payload. When the
        proposal applies cleanly the working copy is replaced with the
        result; stale or broken proposals leave the document untouched.
        """
        if "proposal=" in link_or_payload:
            link = parse_proposal_from_url(link_or_payload)
            proposal = link.proposal if link is not None else None
            if (
                link is not None
                and link.dandiset_id
                and self.document.dandiset_id
                and link.dandiset_id != self.document.dandiset_id
            ):
                return ProposalValidation(
                    ok=False,
                    reason=(
                        f"Proposal is for dandiset {link.dandiset_id}, "
                        f"but {self.document.dandiset_id} is loaded"
                    ),
                )
        else:
            proposal = decode_proposal(link_or_payload)
        if proposal is None:
            return ProposalValidation(ok=False, reason="Invalid or corrupted proposal")
        validation = validate_proposal(proposal, self.document.original)
        if validation.ok:
            self.document.replace(validation.modified_document)
        return validation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.abort()
        self._client.close()
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> AssistantSession:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
