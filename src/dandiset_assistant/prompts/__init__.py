"""Prompt builders for the metadata assistant."""

from dandiset_assistant.prompts.suggestions import INITIAL_SUGGESTIONS_PROMPT
from dandiset_assistant.prompts.summarize import build_summarization_prompt
from dandiset_assistant.prompts.system import (
    GUARDRAIL_PHRASES,
    METADATA_CHECKLIST,
    build_system_prompt,
)

__all__ = [
    "GUARDRAIL_PHRASES",
    "INITIAL_SUGGESTIONS_PROMPT",
    "METADATA_CHECKLIST",
    "build_summarization_prompt",
    "build_system_prompt",
]
