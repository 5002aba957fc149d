"""Dandiset metadata assistant.

An LLM agent that proposes edits to DANDI Archive dandiset metadata,
plus the patch, delta and proposal-link machinery to review them.
"""

from dandiset_assistant._version import __version__

# Entry point
from dandiset_assistant.session import AssistantSession
from dandiset_assistant.config import (
    DANDI_INSTANCES,
    AssistantConfig,
    DandiInstance,
    get_instance_by_api_url,
)

# Documents, deltas and proposals
from dandiset_assistant.document import (
    MISSING,
    DiffPatcher,
    MetadataChange,
    MetadataDocument,
    OperationResult,
    OperationType,
    apply_delta,
    apply_operation,
    compute_delta,
    compute_hash,
    delta_to_changes,
    reverse_delta,
)
from dandiset_assistant.proposal import (
    Proposal,
    ProposalValidation,
    clear_proposal_from_url,
    create_proposal_link,
    decode_proposal,
    encode_proposal,
    parse_proposal_from_url,
    validate_proposal,
)

# Conversation and agent loop
from dandiset_assistant.conversation import (
    AssistantMessage,
    ChatMessage,
    Conversation,
    ToolMessage,
    Usage,
    UserMessage,
)
from dandiset_assistant.orchestrator import (
    AgentLoop,
    CancellationToken,
    OrchestratorConfig,
    TurnOutcome,
    TurnResult,
)

# Exceptions
from dandiset_assistant.exceptions import (
    AssistantError,
    DeltaApplyError,
    OrchestratorError,
    ProposalError,
    SchemaUnavailableError,
    TurnCancelledError,
    TurnError,
    TurnFailedError,
)

__all__ = [
    "__version__",
    # Entry point
    "AssistantSession",
    "AssistantConfig",
    "DandiInstance",
    "DANDI_INSTANCES",
    "get_instance_by_api_url",
    # Documents, deltas and proposals
    "MISSING",
    "MetadataDocument",
    "OperationResult",
    "OperationType",
    "apply_operation",
    "DiffPatcher",
    "MetadataChange",
    "compute_delta",
    "apply_delta",
    "reverse_delta",
    "delta_to_changes",
    "compute_hash",
    "Proposal",
    "ProposalValidation",
    "encode_proposal",
    "decode_proposal",
    "validate_proposal",
    "create_proposal_link",
    "parse_proposal_from_url",
    "clear_proposal_from_url",
    # Conversation and agent loop
    "ChatMessage",
    "UserMessage",
    "AssistantMessage",
    "ToolMessage",
    "Usage",
    "Conversation",
    "AgentLoop",
    "CancellationToken",
    "OrchestratorConfig",
    "TurnOutcome",
    "TurnResult",
    # Exceptions
    "AssistantError",
    "DeltaApplyError",
    "ProposalError",
    "SchemaUnavailableError",
    "TurnError",
    "TurnCancelledError",
    "TurnFailedError",
    "OrchestratorError",
]
