"""Deterministic hashing of metadata documents.

Provides canonical JSON serialization and a SHA-256 document digest.
Canonicalization sorts keys at every level, so the same logical document
always yields the same digest regardless of key insertion order.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(data: Any) -> bytes:
    """Serialize data to canonical JSON bytes.

    Uses sorted keys, compact separators, and UTF-8 encoding
    to ensure deterministic output.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def compute_hash(document: Any) -> str:
    """Return the SHA-256 hex digest of a document's canonical form."""
    return hashlib.sha256(canonical_json(document)).hexdigest()
