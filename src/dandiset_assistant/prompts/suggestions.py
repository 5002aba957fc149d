"""Prompt used to fetch suggested first prompts for a freshly loaded dandiset."""

from __future__ import annotations

INITIAL_SUGGESTIONS_PROMPT: str = (
    "Based on the current metadata, provide 3 very short (3-8 words each) "
    "suggested prompts that would help improve this dandiset's metadata. "
    "Only output the suggestions code block, nothing else."
)
