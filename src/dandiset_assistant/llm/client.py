"""Streaming client for the completion gateway.

The gateway proxies OpenRouter: it takes a JSON request with the system
message kept apart from the history and answers with a server-sent event
stream. ``send`` performs exactly one HTTP attempt; retry policy belongs
to the agent loop.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Callable

import httpx

from dandiset_assistant.exceptions import TurnCancelledError
from dandiset_assistant.llm.errors import (
    LLMConnectionError,
    LLMHTTPError,
    LLMRateLimitError,
    LLMResponseError,
)
from dandiset_assistant.llm.models import CompletionRequest, CompletionResult
from dandiset_assistant.llm.stream import CompletionStreamParser

if TYPE_CHECKING:
    from dandiset_assistant.config import AssistantConfig
    from dandiset_assistant.orchestrator.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "https://qp-worker.neurosift.app/api/completion"
API_KEY_HEADER = "x-openrouter-key"
_RATE_LIMIT_PHRASE = "rate limit"


def extract_error_detail(response: httpx.Response) -> str:
    """Best-effort error text from a non-success response.

    Tries ``error.message``, then ``message``, then ``error`` of a JSON
    body, then the raw body, then the reason phrase.
    """
    text = response.text
    if not text:
        return response.reason_phrase or f"HTTP {response.status_code}"
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
        if isinstance(error, str) and error:
            return error
    return text


def is_rate_limit(status_code: int, detail: str) -> bool:
    return status_code == 429 or _RATE_LIMIT_PHRASE in detail.lower()


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class CompletionClient:
    """Sync httpx client for the streaming completion gateway.

    Usage::

        with CompletionClient(api_key="sk-or-...") as client:
            result = client.send(request, on_partial_text=print)
            print(result.text, result.usage)
    """

    def __init__(
        self,
        gateway_url: str = DEFAULT_GATEWAY_URL,
        api_key: str | None = None,
        timeout: float = 120.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            gateway_url: Completion endpoint.
            api_key: Optional OpenRouter key; without it the gateway only
                serves its cheap models.
            timeout: Request timeout in seconds.
            http_client: Pre-built httpx client (e.g. with a mock transport).
                When given, the caller owns its lifecycle.
        """
        self._gateway_url = gateway_url
        self._api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(
        cls, config: AssistantConfig, http_client: httpx.Client | None = None
    ) -> CompletionClient:
        return cls(
            gateway_url=config.gateway_url,
            api_key=config.openrouter_api_key,
            timeout=config.request_timeout,
            http_client=http_client,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers[API_KEY_HEADER] = self._api_key
        return headers

    def send(
        self,
        request: CompletionRequest,
        on_partial_text: Callable[[str], None] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> CompletionResult:
        """Stream one completion.

        Args:
            request: The completion request.
            on_partial_text: Called with the accumulated assistant text each
                time a text delta arrives.
            cancel_token: Cancelling it closes the in-flight response.

        Returns:
            Decoded text, tool calls and token usage.

        Raises:
            LLMRateLimitError: On HTTP 429 or a rate-limit error message.
            LLMHTTPError: On any other non-success status.
            LLMConnectionError: On network failures.
            LLMResponseError: If the stream breaks off unexpectedly.
            TurnCancelledError: If ``cancel_token`` fires.
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        parser = CompletionStreamParser()
        try:
            with self._client.stream(
                "POST",
                self._gateway_url,
                json=request.to_payload(),
                headers=self._headers(),
            ) as response:
                unregister = (
                    cancel_token.on_cancel(response.close) if cancel_token is not None else None
                )
                try:
                    if not response.is_success:
                        response.read()
                        raise self._error_for(response)
                    for line in response.iter_lines():
                        if cancel_token is not None:
                            cancel_token.raise_if_cancelled()
                        if parser.feed_line(line) and on_partial_text is not None:
                            on_partial_text(parser.text)
                        if parser.done:
                            break
                finally:
                    if unregister is not None:
                        unregister()
        except (httpx.TransportError, httpx.StreamError) as exc:
            if cancel_token is not None and cancel_token.cancelled:
                raise TurnCancelledError() from exc
            if isinstance(exc, httpx.TransportError):
                raise LLMConnectionError(f"Network error: {exc}") from exc
            raise LLMResponseError(f"Response stream failed: {exc}") from exc

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        result = parser.result()
        logger.debug(
            "Completion finished: %d chars, %d tool calls, %d/%d tokens",
            len(result.text),
            len(result.tool_calls),
            result.usage.prompt_tokens,
            result.usage.completion_tokens,
        )
        return result

    @staticmethod
    def _error_for(response: httpx.Response) -> Exception:
        detail = extract_error_detail(response)
        if is_rate_limit(response.status_code, detail):
            return LLMRateLimitError(
                f"Rate limited: {detail}", retry_after=_retry_after(response)
            )
        return LLMHTTPError(response.status_code, detail)

    def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> CompletionClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
