"""Shareable review links carrying an encoded proposal."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from dandiset_assistant.proposal.codec import Proposal, decode_proposal, encode_proposal

logger = logging.getLogger(__name__)

DANDISET_PARAM = "dandiset"
PROPOSAL_PARAM = "proposal"
REVIEW_PARAM = "review"
VERSION_PARAM = "version"


@dataclass(frozen=True)
class ProposalLink:
    """Parsed contents of a review link."""

    proposal: Proposal
    dandiset_id: str | None = None
    review: bool = False


def _with_params(url: str, drop: set[str], add: list[tuple[str, str]]) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in drop]
    query.extend(add)
    return urlunsplit(parts._replace(query=urlencode(query)))


def create_proposal_link(
    base_url: str,
    dandiset_id: str,
    original: Any,
    modified: Any,
) -> str | None:
    """Return ``base_url`` with the proposal attached, or None if unchanged.

    Any ``version`` parameter is dropped so the reviewer opens the draft.
    """
    encoded = encode_proposal(original, modified)
    if encoded is None:
        return None
    return _with_params(
        base_url,
        drop={DANDISET_PARAM, PROPOSAL_PARAM, REVIEW_PARAM, VERSION_PARAM},
        add=[(DANDISET_PARAM, dandiset_id), (PROPOSAL_PARAM, encoded), (REVIEW_PARAM, "1")],
    )


def parse_proposal_from_url(url: str) -> ProposalLink | None:
    """Extract the proposal from a review link. Never raises."""
    try:
        params = dict(parse_qsl(urlsplit(url).query))
    except ValueError:
        return None
    proposal = decode_proposal(params.get(PROPOSAL_PARAM))
    if proposal is None:
        return None
    return ProposalLink(
        proposal=proposal,
        dandiset_id=params.get(DANDISET_PARAM) or None,
        review=params.get(REVIEW_PARAM) == "1",
    )


def clear_proposal_from_url(url: str) -> str:
    """Return ``url`` without its ``proposal`` parameter."""
    return _with_params(url, drop={PROPOSAL_PARAM}, add=[])
