"""LLM-specific error hierarchy.

All LLM errors inherit from AssistantError for consistent exception handling.
"""

from __future__ import annotations

from dandiset_assistant.exceptions import AssistantError


class LLMClientError(AssistantError):
    """Base for all completion client errors."""


class LLMConfigError(LLMClientError):
    """Missing or invalid client configuration."""


class LLMRateLimitError(LLMClientError):
    """Rate limited by the gateway (429 or a rate-limit message).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header),
            or None if not provided.
    """

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class LLMHTTPError(LLMClientError):
    """Non-success HTTP status that is not a rate limit.

    Attributes:
        status_code: HTTP status returned by the gateway.
        body: Error detail extracted from the response body.
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"OpenRouter API error: {body}")


class LLMConnectionError(LLMClientError):
    """Network-level failure talking to the gateway."""


class LLMResponseError(LLMClientError):
    """Unexpected or truncated response from the gateway."""
