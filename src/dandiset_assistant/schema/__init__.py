"""Metadata schema cache and validation."""

from dandiset_assistant.schema.cache import (
    DEFAULT_SCHEMA_BASE_URL,
    DEFAULT_SCHEMA_VERSION,
    SchemaCache,
)
from dandiset_assistant.schema.validate import (
    DEFAULT_READ_ONLY_FIELDS,
    MetadataValidator,
    ValidationIssue,
    format_issues,
)

__all__ = [
    "SchemaCache",
    "MetadataValidator",
    "ValidationIssue",
    "format_issues",
    "DEFAULT_SCHEMA_VERSION",
    "DEFAULT_SCHEMA_BASE_URL",
    "DEFAULT_READ_ONLY_FIELDS",
]
