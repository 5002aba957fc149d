"""Agent toolkit: tool definitions, typed parameters and executor."""

from dandiset_assistant.toolkit.definitions import get_all_tools, rank_terms
from dandiset_assistant.toolkit.executor import ToolExecutor
from dandiset_assistant.toolkit.models import (
    ToolDefinition,
    ToolExecutionContext,
    ToolOutput,
    ToolResult,
)
from dandiset_assistant.toolkit.params import (
    FetchUrlParams,
    LookupOntologyTermParams,
    MetadataOperation,
    ProposeMetadataChangeParams,
)

__all__ = [
    "ToolDefinition",
    "ToolExecutionContext",
    "ToolExecutor",
    "ToolOutput",
    "ToolResult",
    "get_all_tools",
    "rank_terms",
    "MetadataOperation",
    "ProposeMetadataChangeParams",
    "FetchUrlParams",
    "LookupOntologyTermParams",
]
