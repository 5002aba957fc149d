"""Turn outcome models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dandiset_assistant.conversation.models import ChatMessage


class TurnOutcome(str, enum.Enum):
    """How a submitted user message ended."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnResult:
    """Messages a turn added to the conversation, and how it ended.

    Frozen: the result is immutable once the turn completes.

    Attributes:
        messages: Messages appended to the log by this turn (including the
            trailing error message on abort or failure).
        outcome: Completed, aborted or failed.
        error: Error text for aborted or failed turns.
    """

    messages: list[ChatMessage] = field(default_factory=list)
    outcome: TurnOutcome = TurnOutcome.COMPLETED
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome is TurnOutcome.COMPLETED
