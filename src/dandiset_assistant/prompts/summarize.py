"""Summarization prompt for conversation compression.

The summary replaces the whole conversation, so the prompt asks the model
to keep everything needed to keep working on the same dandiset.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dandiset_assistant.conversation.summarize import conversation_to_plain_text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dandiset_assistant.conversation.models import ChatMessage

SUMMARIZE_INSTRUCTIONS: str = (
    "Create a thorough summary of the following conversation that preserves "
    "all essential context, including:\n"
    "- All metadata changes that were proposed or discussed\n"
    "- Key questions asked and answers provided\n"
    "- Tool usage and results\n"
    "- Important decisions or recommendations\n"
    "- Any context needed for continuing to assist with this dandiset's metadata"
)


def build_summarization_prompt(messages: Sequence[ChatMessage]) -> str:
    """Build the user prompt asking for a summary of ``messages``."""
    transcript = conversation_to_plain_text(messages)
    return f"{SUMMARIZE_INSTRUCTIONS}\n\nHere is the full conversation:\n\n{transcript}"
