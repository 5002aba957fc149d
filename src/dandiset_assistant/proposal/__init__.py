"""Proposal codec and review links."""

from dandiset_assistant.proposal.codec import (
    STALE_PROPOSAL_REASON,
    Proposal,
    ProposalValidation,
    create_proposal,
    decode_proposal,
    encode_proposal,
    serialize_proposal,
    validate_proposal,
)
from dandiset_assistant.proposal.link import (
    ProposalLink,
    clear_proposal_from_url,
    create_proposal_link,
    parse_proposal_from_url,
)

__all__ = [
    "Proposal",
    "ProposalValidation",
    "ProposalLink",
    "STALE_PROPOSAL_REASON",
    "create_proposal",
    "encode_proposal",
    "decode_proposal",
    "serialize_proposal",
    "validate_proposal",
    "create_proposal_link",
    "parse_proposal_from_url",
    "clear_proposal_from_url",
]
