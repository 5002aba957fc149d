"""Proposal codec: a delta plus the hash of the document it applies to.

A proposal travels as an opaque string (usually inside a link). The
recipient recomputes the hash of its own copy of the document and only
applies the delta when the hashes match; a diverged document is
rejected, never force-applied.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from dandiset_assistant.document.diff import apply_delta, compute_delta
from dandiset_assistant.document.hashing import canonical_json, compute_hash
from dandiset_assistant.exceptions import AssistantError

logger = logging.getLogger(__name__)

STALE_PROPOSAL_REASON = (
    "The metadata has changed since this proposal was created. "
    "The proposed changes can no longer be applied safely."
)


class Proposal(BaseModel):
    """Delta paired with the digest of its base document.

    Serialized with the short keys ``h`` and ``d`` to keep links compact.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    hash: str = Field(alias="h", min_length=1)
    delta: Union[dict, list] = Field(alias="d")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class ProposalValidation:
    """Result of checking a proposal against the current document.

    Attributes:
        ok: True when the proposal applied cleanly.
        modified_document: The current document with the delta applied
            (None when ``ok`` is False).
        reason: Human-readable rejection reason ("" when ``ok``).
    """

    ok: bool
    modified_document: Any = None
    reason: str = ""


def create_proposal(original: Any, modified: Any) -> Proposal | None:
    """Build a proposal, or None when the documents are equal."""
    delta = compute_delta(original, modified)
    if delta is None:
        return None
    return Proposal(hash=compute_hash(original), delta=delta)


def encode_proposal(original: Any, modified: Any) -> str | None:
    """Encode the change from ``original`` to ``modified`` for transport.

    Returns:
        Unpadded base64url text of the canonical ``{"d": ..., "h": ...}``
        JSON, or None when there is nothing to propose.
    """
    proposal = create_proposal(original, modified)
    if proposal is None:
        return None
    return serialize_proposal(proposal)


def serialize_proposal(proposal: Proposal) -> str:
    raw = canonical_json(proposal.to_wire())
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_proposal(encoded: str | None) -> Proposal | None:
    """Decode a transported proposal. Never raises.

    Accepts base64url or standard base64, with or without padding.
    Anything that does not decode to ``{"h": <non-empty str>, "d": <delta>}``
    yields None.
    """
    if not encoded or not isinstance(encoded, str):
        return None
    text = encoded.strip().replace("+", "-").replace("/", "_").rstrip("=")
    text += "=" * (-len(text) % 4)
    try:
        raw = base64.urlsafe_b64decode(text)
        data = json.loads(raw.decode("utf-8"))
        if not isinstance(data, dict) or not data.get("d"):
            return None
        return Proposal.model_validate(data)
    except (binascii.Error, ValueError, TypeError, RecursionError) as exc:
        logger.debug("Ignoring undecodable proposal: %s", exc)
        return None


def validate_proposal(proposal: Proposal, current: Any) -> ProposalValidation:
    """Check ``proposal`` against ``current`` and apply it if it fits.

    ``current`` is never mutated. Application failures become a rejection
    reason instead of an exception.
    """
    if compute_hash(current) != proposal.hash:
        logger.info("Rejected stale proposal (hash %s)", proposal.hash[:12])
        return ProposalValidation(ok=False, reason=STALE_PROPOSAL_REASON)
    try:
        modified = apply_delta(current, proposal.delta)
    except (AssistantError, ValueError, TypeError, KeyError, IndexError, RecursionError) as exc:
        return ProposalValidation(
            ok=False, reason=f"Failed to apply proposed changes: {exc}"
        )
    return ProposalValidation(ok=True, modified_document=modified)
