"""Completion gateway client, stream decoding and model catalog."""

# catalog first: conversation.state imports it while this package initializes
from dandiset_assistant.llm.catalog import (
    AVAILABLE_MODELS,
    CHEAP_MODELS,
    DEFAULT_MODEL,
    ModelCatalog,
    ModelInfo,
)
from dandiset_assistant.llm.errors import (
    LLMClientError,
    LLMConfigError,
    LLMConnectionError,
    LLMHTTPError,
    LLMRateLimitError,
    LLMResponseError,
)
from dandiset_assistant.llm.models import CompletionRequest, CompletionResult
from dandiset_assistant.llm.stream import CompletionStreamParser
from dandiset_assistant.llm.client import DEFAULT_GATEWAY_URL, CompletionClient

__all__ = [
    "CompletionClient",
    "CompletionRequest",
    "CompletionResult",
    "CompletionStreamParser",
    "DEFAULT_GATEWAY_URL",
    "ModelCatalog",
    "ModelInfo",
    "AVAILABLE_MODELS",
    "CHEAP_MODELS",
    "DEFAULT_MODEL",
    "LLMClientError",
    "LLMConfigError",
    "LLMConnectionError",
    "LLMHTTPError",
    "LLMRateLimitError",
    "LLMResponseError",
]
