"""Path-addressed operations on immutable JSON-like documents.

Every operation returns a NEW document and never mutates its input.
Only the chain of containers along the addressed path is copied; sibling
subtrees are shared between the input and the result.

Precondition failures (empty path, non-array target, index out of
bounds) are reported through ``OperationResult`` rather than raised, so
callers such as agent tools can relay them to the model verbatim.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from dandiset_assistant.document.paths import is_index_segment, join_path, parse_path

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel type for an absent operation value (distinct from JSON null)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class OperationType(str, enum.Enum):
    """Supported document operations."""

    SET = "set"
    DELETE = "delete"
    INSERT = "insert"
    APPEND = "append"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a document operation.

    Attributes:
        success: Whether the operation was applied.
        data: The new document on success, None on failure.
        error: Human-readable failure reason ("" on success).
    """

    success: bool
    data: Any = None
    error: str = ""

    @classmethod
    def ok(cls, data: Any) -> OperationResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> OperationResult:
        return cls(success=False, error=error)


class _PathError(Exception):
    """Internal: a path cannot be traversed or assigned."""


# ------------------------------------------------------------------
# Reading
# ------------------------------------------------------------------


def _child(node: Any, part: str, default: Any = None) -> Any:
    if isinstance(node, list):
        if is_index_segment(part) and int(part) < len(node):
            return node[int(part)]
        return default
    if isinstance(node, dict):
        return node.get(part, default)
    return default


def get_value(doc: Any, path: str, default: Any = None) -> Any:
    """Return the value at ``path``, or ``default`` if it does not resolve.

    An empty path returns the document itself.
    """
    current = doc
    for part in parse_path(path):
        current = _child(current, part, MISSING)
        if current is MISSING:
            return default
    return current


# ------------------------------------------------------------------
# Copy-on-write writing
# ------------------------------------------------------------------


def _assoc(node: Any, part: str, value: Any, parts: list[str], depth: int) -> Any:
    """Return a shallow copy of ``node`` with ``part`` set to ``value``."""
    if isinstance(node, list):
        location = join_path(parts[:depth]) or "<root>"
        if not is_index_segment(part):
            raise _PathError(
                f'Cannot use key "{part}" on array at path "{location}"'
            )
        index = int(part)
        if index > len(node):
            raise _PathError(
                f"Index {index} out of bounds for array of length {len(node)} "
                f'at path "{location}"'
            )
        copied = list(node)
        if index == len(node):
            copied.append(value)
        else:
            copied[index] = value
        return copied
    if isinstance(node, dict):
        copied = dict(node)
        copied[part] = value
        return copied
    location = join_path(parts[:depth]) or "<root>"
    raise _PathError(
        f'Cannot set "{part}" inside non-container value at path "{location}"'
    )


def _set_in(node: Any, parts: list[str], value: Any, depth: int = 0) -> Any:
    part = parts[depth]
    if depth == len(parts) - 1:
        return _assoc(node, part, value, parts, depth)
    child = _child(node, part)
    if child is None:
        # Auto-create the missing container, shaped by the NEXT segment.
        child = [] if is_index_segment(parts[depth + 1]) else {}
    return _assoc(node, part, _set_in(child, parts, value, depth + 1), parts, depth)


def _set_parts(doc: Any, parts: list[str], value: Any) -> OperationResult:
    if not parts:
        return OperationResult.fail("Path cannot be empty")
    try:
        return OperationResult.ok(_set_in(doc, parts, value))
    except _PathError as exc:
        return OperationResult.fail(str(exc))


def set_value(doc: Any, path: str, value: Any) -> OperationResult:
    """Set ``value`` at ``path``, creating missing intermediate containers.

    A missing (or null) intermediate becomes ``[]`` when the following
    segment is numeric and ``{}`` otherwise. A final array index may equal
    the array length, which appends.
    """
    return _set_parts(doc, parse_path(path), value)


def _split_index_path(path: str, verb: str) -> tuple[list[str], int] | OperationResult:
    parts = parse_path(path)
    if not parts:
        return OperationResult.fail("Path cannot be empty")
    last = parts[-1]
    if not is_index_segment(last):
        return OperationResult.fail(
            f'Cannot {verb} non-array item. Path "{path}" does not end with an array index.'
        )
    return parts[:-1], int(last)


def _replace_array(doc: Any, parent_parts: list[str], new_array: list) -> OperationResult:
    if not parent_parts:
        return OperationResult.ok(new_array)
    return _set_parts(doc, parent_parts, new_array)


def delete_array_item(doc: Any, path: str) -> OperationResult:
    """Remove the array element addressed by ``path`` (last segment = index)."""
    split = _split_index_path(path, "delete")
    if isinstance(split, OperationResult):
        return split
    parent_parts, index = split
    parent_path = join_path(parent_parts)
    parent = get_value(doc, parent_path) if parent_parts else doc
    if not isinstance(parent, list):
        return OperationResult.fail(
            f'Cannot delete from non-array at path "{parent_path or path}"'
        )
    if index >= len(parent):
        return OperationResult.fail(
            f"Index {index} out of bounds for array of length {len(parent)}"
        )
    return _replace_array(doc, parent_parts, parent[:index] + parent[index + 1:])


def insert_array_item(doc: Any, path: str, value: Any) -> OperationResult:
    """Insert ``value`` before the index addressed by ``path``.

    Inserting at exactly ``len(array)`` appends.
    """
    split = _split_index_path(path, "insert at")
    if isinstance(split, OperationResult):
        return split
    parent_parts, index = split
    parent_path = join_path(parent_parts)
    parent = get_value(doc, parent_path) if parent_parts else doc
    if not isinstance(parent, list):
        return OperationResult.fail(
            f'Cannot insert into non-array at path "{parent_path or path}"'
        )
    if index > len(parent):
        return OperationResult.fail(
            f"Index {index} out of bounds for array of length {len(parent)}"
        )
    return _replace_array(doc, parent_parts, [*parent[:index], value, *parent[index:]])


def append_array_item(doc: Any, path: str, value: Any) -> OperationResult:
    """Append ``value`` to the array that ``path`` resolves to."""
    parts = parse_path(path)
    if not parts:
        return OperationResult.fail("Path cannot be empty")
    target = get_value(doc, path)
    if not isinstance(target, list):
        return OperationResult.fail(f'Cannot append to non-array at path "{path}"')
    return _set_parts(doc, parts, [*target, value])


def apply_operation(
    doc: Any,
    operation: OperationType | str,
    path: str,
    value: Any = MISSING,
) -> OperationResult:
    """Dispatch a single document operation.

    This is the main entry point used by tools and the metadata document.

    Args:
        doc: Current document (never mutated).
        operation: One of "set", "delete", "insert", "append".
        path: Dot or bracket path.
        value: Operand for set/insert/append. ``MISSING`` means "not given";
            ``None`` is a legitimate JSON null.

    Returns:
        OperationResult with the new document or an error message.
    """
    try:
        op = OperationType(operation)
    except ValueError:
        return OperationResult.fail(f"Unknown operation: {operation}")

    if op is OperationType.DELETE:
        return delete_array_item(doc, path)
    if value is MISSING:
        return OperationResult.fail(f"Value is required for {op.value} operation")
    if op is OperationType.SET:
        return set_value(doc, path, value)
    if op is OperationType.INSERT:
        return insert_array_item(doc, path, value)
    return append_array_item(doc, path, value)
