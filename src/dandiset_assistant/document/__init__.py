"""Document patch engine: path operations, deltas and hashing."""

from dandiset_assistant.document.diff import (
    Delta,
    DiffPatcher,
    MetadataChange,
    apply_delta,
    change_to_description,
    compute_delta,
    delta_to_changes,
    format_value,
    has_differences,
    reverse_delta,
)
from dandiset_assistant.document.hashing import canonical_json, compute_hash
from dandiset_assistant.document.metadata import MetadataDocument
from dandiset_assistant.document.operations import (
    MISSING,
    OperationResult,
    OperationType,
    append_array_item,
    apply_operation,
    delete_array_item,
    get_value,
    insert_array_item,
    set_value,
)
from dandiset_assistant.document.paths import normalize_path, parse_path

__all__ = [
    # Operations
    "MISSING",
    "OperationResult",
    "OperationType",
    "apply_operation",
    "get_value",
    "set_value",
    "delete_array_item",
    "insert_array_item",
    "append_array_item",
    "normalize_path",
    "parse_path",
    # Deltas
    "Delta",
    "DiffPatcher",
    "MetadataChange",
    "compute_delta",
    "apply_delta",
    "reverse_delta",
    "has_differences",
    "delta_to_changes",
    "format_value",
    "change_to_description",
    # Hashing
    "canonical_json",
    "compute_hash",
    # Snapshots
    "MetadataDocument",
]
