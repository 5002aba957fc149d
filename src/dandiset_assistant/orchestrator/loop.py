"""Multi-turn agent loop for metadata editing.

Sends the conversation to the completion gateway, executes any tool calls
the model requests, feeds the results back, and repeats until the model
answers without tool calls. Transient gateway failures (rate limits,
network errors) are retried with exponential backoff via tenacity; every
wait is announced through the partial-response callback and can be cut
short by the cancellation token.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import tenacity

from dandiset_assistant.conversation.models import AssistantMessage, ToolMessage, Usage
from dandiset_assistant.exceptions import (
    OrchestratorError,
    TurnCancelledError,
    TurnFailedError,
)
from dandiset_assistant.llm.catalog import ModelCatalog
from dandiset_assistant.llm.errors import (
    LLMClientError,
    LLMConnectionError,
    LLMRateLimitError,
)
from dandiset_assistant.llm.models import CompletionRequest, CompletionResult
from dandiset_assistant.orchestrator.cancellation import CancellationToken
from dandiset_assistant.orchestrator.config import OrchestratorConfig
from dandiset_assistant.toolkit.models import ToolResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from dandiset_assistant.conversation.models import ChatMessage
    from dandiset_assistant.conversation.state import Conversation
    from dandiset_assistant.llm.client import CompletionClient
    from dandiset_assistant.toolkit.executor import ToolExecutor
    from dandiset_assistant.toolkit.models import ToolExecutionContext

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, (LLMRateLimitError, LLMConnectionError))


def retry_notice(exc: BaseException | None, delay: float, attempt: int, max_retries: int) -> str:
    """User-visible text shown while waiting to retry a completion."""
    reason = "Rate limit reached" if isinstance(exc, LLMRateLimitError) else "Network error"
    return (
        f"⏳ {reason}. Waiting {round(delay)} seconds before retrying "
        f"(attempt {attempt}/{max_retries})..."
    )


class AgentLoop:
    """Runs completions and tool calls until the model produces a final answer.

    The loop never mutates the conversation it is given. It returns the new
    messages of the turn in order; the caller commits them to the log.

    Usage::

        loop = AgentLoop(client, ToolExecutor(get_all_tools()))
        messages = loop.run(conversation, system_prompt, document)
    """

    def __init__(
        self,
        client: CompletionClient,
        executor: ToolExecutor,
        config: OrchestratorConfig | None = None,
        catalog: ModelCatalog | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._client = client
        self._executor = executor
        self._config = config if config is not None else OrchestratorConfig()
        self._catalog = catalog if catalog is not None else ModelCatalog()
        # Overrides the cancel-aware backoff wait (tests pass a recorder).
        self._sleep = sleep

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    def run(
        self,
        conversation: Conversation,
        system_prompt: str,
        context: ToolExecutionContext,
        on_partial: Callable[[list[ChatMessage]], None] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> list[ChatMessage]:
        """Run one user turn to completion.

        Args:
            conversation: History to send, ending with the new user message.
            system_prompt: System prompt for every completion of the turn.
            context: Document access handed to tool handlers.
            on_partial: Receives the full list of partial messages produced
                so far each time it grows or streamed text arrives.
            cancel_token: Cancelling it aborts the turn.

        Returns:
            The messages produced by the turn, the final assistant answer last.

        Raises:
            TurnCancelledError: The token fired. Carries the partial messages.
            TurnFailedError: A completion failed terminally. Carries the
                partial messages; the LLM error is its ``__cause__``.
            OrchestratorError: The model kept calling tools past ``max_turns``.
        """
        token = cancel_token if cancel_token is not None else CancellationToken()
        model = conversation.model
        history = list(conversation.messages)
        tools = self._executor.to_openai()
        produced: list[ChatMessage] = []
        snapshot: list[ChatMessage] = []

        def emit(extra: list[ChatMessage], durable: bool = True) -> None:
            nonlocal snapshot
            current = [*produced, *extra]
            if durable:
                snapshot = current
            if on_partial is not None:
                on_partial(current)

        def preserved() -> list[ChatMessage]:
            return snapshot if len(snapshot) > len(produced) else list(produced)

        for turn in range(self._config.max_turns):
            request = CompletionRequest(
                model=model,
                system_message=system_prompt,
                messages=[*history, *produced],
                tools=tools,
                app=self._config.app_name,
            )
            try:
                result = self.complete(
                    request,
                    token,
                    on_text=lambda text: emit([AssistantMessage(content=text, model=model)]),
                    on_notice=lambda notice: emit([notice], durable=False),
                )
            except TurnCancelledError as exc:
                raise TurnCancelledError(str(exc), preserved()) from exc
            except LLMClientError as exc:
                logger.error("Completion failed on turn %d: %s", turn + 1, exc)
                raise TurnFailedError(str(exc), preserved()) from exc

            usage = self.price(model, result.usage)
            if not result.tool_calls:
                produced.append(
                    AssistantMessage(content=result.text, model=model, usage=usage)
                )
                logger.debug("Turn finished after %d completion(s)", turn + 1)
                return produced

            produced.append(
                AssistantMessage(
                    content=result.text or None,
                    tool_calls=result.tool_calls,
                    model=model,
                    usage=usage,
                )
            )
            emit([])
            for index, call in enumerate(result.tool_calls):
                if token.cancelled:
                    # Every requested call still needs a result before replay.
                    for skipped in result.tool_calls[index:]:
                        aborted = ToolResult(
                            tool_name=skipped.function.name,
                            success=False,
                            error="Request aborted",
                        )
                        produced.append(
                            ToolMessage(
                                content=aborted.content,
                                tool_call_id=skipped.id,
                                name=skipped.function.name,
                            )
                        )
                    raise TurnCancelledError(partial_messages=produced)
                tool_result = self._executor.execute(
                    call.function.name, call.function.arguments, context
                )
                if not tool_result.success:
                    logger.info("Tool %s failed: %s", call.function.name, tool_result.error)
                produced.extend(tool_result.new_messages)
                produced.append(
                    ToolMessage(
                        content=tool_result.content,
                        tool_call_id=call.id,
                        name=call.function.name,
                    )
                )
                emit([])

        raise OrchestratorError(
            f"Stopped after {self._config.max_turns} completions without a final answer",
            produced,
        )

    def complete(
        self,
        request: CompletionRequest,
        cancel_token: CancellationToken | None = None,
        on_text: Callable[[str], None] | None = None,
        on_notice: Callable[[AssistantMessage], None] | None = None,
    ) -> CompletionResult:
        """Send one completion, retrying transient failures.

        Uses tenacity.Retrying programmatically so the retry count and base
        delay come from the config. Waits are base_delay * 2**attempt.

        Args:
            request: The completion request.
            cancel_token: Cancels the stream and any backoff wait.
            on_text: Receives the accumulated streamed text.
            on_notice: Receives the waiting notice before each retry.

        Raises:
            LLMClientError: Non-retryable failure, or retries exhausted.
            TurnCancelledError: The token fired.
        """
        token = cancel_token if cancel_token is not None else CancellationToken()
        max_retries = self._config.max_retries
        log_retry = tenacity.before_sleep_log(logger, logging.WARNING)

        def before_sleep(retry_state: tenacity.RetryCallState) -> None:
            log_retry(retry_state)
            if on_notice is None:
                return
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            notice = retry_notice(exc, delay, retry_state.attempt_number, max_retries)
            on_notice(AssistantMessage(content=notice, model=request.model))

        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=tenacity.wait_exponential(
                multiplier=self._config.retry_base_delay, exp_base=2
            ),
            stop=tenacity.stop_after_attempt(max_retries + 1),
            sleep=lambda seconds: self._backoff(seconds, token),
            before_sleep=before_sleep,
            reraise=True,
        )
        return retryer(
            self._client.send, request, on_partial_text=on_text, cancel_token=token
        )

    def _backoff(self, seconds: float, token: CancellationToken) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
            token.raise_if_cancelled()
            return
        if token.wait(seconds):
            raise TurnCancelledError()

    def price(self, model: str, usage: Usage) -> Usage:
        """Return ``usage`` with its estimated cost filled in from the catalog."""
        cost = self._catalog.estimate_cost(
            model, usage.prompt_tokens, usage.completion_tokens
        )
        return usage.model_copy(update={"estimated_cost": cost})
