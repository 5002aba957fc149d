"""Suggested follow-up prompts embedded in assistant replies.

The model may end a reply with a fenced block::

    ```suggestions
    ["Suggest keywords", "Review contributors"]
    ```

which the front end shows as clickable prompts.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_START_MARKER = "```suggestions"
_END_MARKER = "```"


@dataclass(frozen=True)
class ParsedSuggestions:
    """Reply text with the suggestions block removed, plus the suggestions."""

    cleaned_content: str
    suggestions: list[str] = field(default_factory=list)


def parse_suggestions(content: str) -> ParsedSuggestions:
    """Extract the first ``suggestions`` block from ``content``.

    A block whose body is not a JSON array of strings yields no
    suggestions but is still stripped from the text. An unterminated
    block is left in place.
    """
    start = content.find(_START_MARKER)
    if start == -1:
        return ParsedSuggestions(cleaned_content=content)
    body_start = start + len(_START_MARKER)
    end = content.find(_END_MARKER, body_start)
    if end == -1:
        return ParsedSuggestions(cleaned_content=content)

    suggestions: list[str] = []
    try:
        parsed = json.loads(content[body_start:end].strip())
    except ValueError as exc:
        logger.debug("Ignoring malformed suggestions block: %s", exc)
    else:
        if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
            suggestions = parsed

    cleaned = (content[:start] + content[end + len(_END_MARKER):]).strip()
    return ParsedSuggestions(cleaned_content=cleaned, suggestions=suggestions)


def has_suggestions(content: str) -> bool:
    start = content.find(_START_MARKER)
    return start != -1 and content.find(_END_MARKER, start + len(_START_MARKER)) != -1
