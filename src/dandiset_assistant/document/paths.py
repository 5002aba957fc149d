"""Dot-path addressing for JSON-like documents.

Paths are dot-separated object keys and non-negative array indices
(``contributor.0.name``). Bracketed indices (``contributor[0].name``)
are accepted and normalized to dot form.
"""

from __future__ import annotations

import re

_BRACKET_INDEX = re.compile(r"\[(\d+)\]")


def normalize_path(path: str) -> str:
    """Convert bracketed array indices to dot notation.

    >>> normalize_path("contributor[0].affiliation[1]")
    'contributor.0.affiliation.1'
    """
    return _BRACKET_INDEX.sub(r".\1", path)


def parse_path(path: str) -> list[str]:
    """Split a path into its segments, dropping empty ones."""
    return [part for part in normalize_path(path).split(".") if part]


def join_path(parts: list[str]) -> str:
    return ".".join(parts)


def is_index_segment(part: str) -> bool:
    """Return True if the segment addresses an array position."""
    return part.isascii() and part.isdigit()
