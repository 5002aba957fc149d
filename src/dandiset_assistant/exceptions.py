"""Dandiset assistant exception hierarchy.

All assistant-specific exceptions inherit from AssistantError.

Patch-engine precondition failures are NOT exceptions: they are reported
as ``OperationResult`` values so tools can relay them to the model.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dandiset_assistant.conversation.models import ChatMessage


class AssistantError(Exception):
    """Base exception for all dandiset assistant errors."""


class DeltaApplyError(AssistantError):
    """Raised when a delta does not fit the document it is applied to.

    Attributes:
        path: Dot path of the node where application failed ("" for root).
    """

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        location = path or "<root>"
        super().__init__(f"{message} (at {location})")


class ProposalError(AssistantError):
    """Raised when a proposal link cannot be built (no base URL or dandiset)."""


class SchemaUnavailableError(AssistantError):
    """Raised when no metadata schema can be fetched or found in cache."""

    def __init__(self, version: str, reason: str = "") -> None:
        self.version = version
        detail = f": {reason}" if reason else ""
        super().__init__(f"Metadata schema v{version} unavailable{detail}")


class TurnError(AssistantError):
    """Base for errors that end an agent turn.

    Attributes:
        partial_messages: Messages already produced by the turn before it
            ended (assistant tool-call records, tool results, partial text).
    """

    def __init__(
        self,
        message: str,
        partial_messages: list[ChatMessage] | None = None,
    ) -> None:
        self.partial_messages: list[ChatMessage] = list(partial_messages or [])
        super().__init__(message)


class TurnCancelledError(TurnError):
    """Raised when the cancellation token fires during a turn.

    Cancellation is never retried.
    """

    def __init__(
        self,
        message: str = "Request aborted",
        partial_messages: list[ChatMessage] | None = None,
    ) -> None:
        super().__init__(message, partial_messages)


class OrchestratorError(TurnError):
    """Raised when the agent loop cannot complete a turn (e.g. turn cap hit)."""


class TurnFailedError(TurnError):
    """Raised when a completion fails terminally (non-retryable or retries exhausted).

    The underlying LLM error is chained as ``__cause__``.
    """
