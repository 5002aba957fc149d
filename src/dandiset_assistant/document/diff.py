"""Structural deltas between two metadata document snapshots.

Deltas use the jsondiffpatch wire convention so they stay compact inside
proposal links:

- added value:    ``[new]``
- modified value: ``[old, new]``
- deleted value:  ``[old, 0, 0]``
- array delta:    ``{"_t": "a", "<newIndex>": ..., "_<oldIndex>": ...}``
- moved element:  ``["", newIndex, 3]`` under ``"_<oldIndex>"``

Array elements are matched by a stable identity (``@id``, ``id`` or
``identifier``, else their canonical JSON) so that a reordering is
recorded as a move, and an edited element keeps its identity.

Application verifies every value it replaces or removes and raises
``DeltaApplyError`` when the target is not the document the delta was
computed against. It never mutates its input.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Union

from dandiset_assistant.document.hashing import canonical_json
from dandiset_assistant.exceptions import DeltaApplyError

logger = logging.getLogger(__name__)

Delta = Union[dict, list]

_ARRAY_MARKER = "_t"
_ARRAY_TAG = "a"
_DELETED = 0
_MOVED = 3
_IDENTITY_KEYS = ("@id", "id", "identifier")


def default_object_hash(item: Any) -> str:
    """Identity used to match array elements across snapshots."""
    if isinstance(item, dict):
        for key in _IDENTITY_KEYS:
            ident = item.get(key)
            if ident:
                return f"{key}:{canonical_json(ident).decode('utf-8')}"
    return canonical_json(item).decode("utf-8")


def json_equal(a: Any, b: Any) -> bool:
    """Strict JSON equality: ``true`` is not ``1``, but ``1`` equals ``1.0``."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def _is_array_delta(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get(_ARRAY_MARKER) == _ARRAY_TAG


def _lcs_pairs(left: list[str], right: list[str]) -> list[tuple[int, int]]:
    """Longest common subsequence of two hash lists as ascending index pairs."""
    n, m = len(left), len(right)
    table = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        for j in range(m - 1, -1, -1):
            if left[i] == right[j]:
                table[i][j] = table[i + 1][j + 1] + 1
            else:
                table[i][j] = max(table[i + 1][j], table[i][j + 1])
    pairs: list[tuple[int, int]] = []
    i = j = 0
    while i < n and j < m:
        if left[i] == right[j]:
            pairs.append((i, j))
            i += 1
            j += 1
        elif table[i + 1][j] >= table[i][j + 1]:
            i += 1
        else:
            j += 1
    return pairs


def _format_path(parts: list[str]) -> str:
    return ".".join(parts)


class DiffPatcher:
    """Computes, applies and reverses document deltas.

    Constructed explicitly so callers (and tests) can choose the element
    identity and property filtering they need.

    Args:
        object_hash: Maps an array element to its identity string.
        property_filter: Optional predicate; object keys for which it
            returns False are ignored by ``diff``. Note that filtered keys
            are not reproduced when the delta is applied.
        detect_move: Record reordered array elements as moves.
    """

    def __init__(
        self,
        object_hash: Callable[[Any], str] = default_object_hash,
        property_filter: Callable[[str], bool] | None = None,
        detect_move: bool = True,
    ) -> None:
        self._object_hash = object_hash
        self._property_filter = property_filter
        self._detect_move = detect_move

    # ------------------------------------------------------------------
    # diff
    # ------------------------------------------------------------------

    def diff(self, left: Any, right: Any) -> Delta | None:
        """Return the delta turning ``left`` into ``right``, or None if equal."""
        if isinstance(left, dict) and isinstance(right, dict):
            return self._diff_objects(left, right)
        if isinstance(left, list) and isinstance(right, list):
            return self._diff_arrays(left, right)
        if json_equal(left, right):
            return None
        return [copy.deepcopy(left), copy.deepcopy(right)]

    def _include(self, key: str) -> bool:
        return self._property_filter is None or self._property_filter(key)

    def _diff_objects(self, left: dict, right: dict) -> dict | None:
        delta: dict[str, Any] = {}
        for key, old in left.items():
            if not self._include(key):
                continue
            if key in right:
                sub = self.diff(old, right[key])
                if sub is not None:
                    delta[key] = sub
            else:
                delta[key] = [copy.deepcopy(old), _DELETED, _DELETED]
        for key, new in right.items():
            if key not in left and self._include(key):
                delta[key] = [copy.deepcopy(new)]
        return delta or None

    def _diff_pair(self, delta: dict, key: str, left: Any, right: Any) -> None:
        sub = self.diff(left, right)
        if sub is not None:
            delta[key] = sub

    def _diff_arrays(self, left: list, right: list) -> dict | None:
        left_hashes = [self._object_hash(item) for item in left]
        right_hashes = [self._object_hash(item) for item in right]
        n, m = len(left), len(right)
        delta: dict[str, Any] = {}

        head = 0
        while head < n and head < m and left_hashes[head] == right_hashes[head]:
            self._diff_pair(delta, str(head), left[head], right[head])
            head += 1

        tail = 0
        while (
            tail < n - head
            and tail < m - head
            and left_hashes[n - 1 - tail] == right_hashes[m - 1 - tail]
        ):
            self._diff_pair(delta, str(m - 1 - tail), left[n - 1 - tail], right[m - 1 - tail])
            tail += 1

        pairs = _lcs_pairs(left_hashes[head:n - tail], right_hashes[head:m - tail])
        matched_left = {head + i for i, _ in pairs}
        matched_right = {head + j for _, j in pairs}
        for i, j in pairs:
            self._diff_pair(delta, str(head + j), left[head + i], right[head + j])

        removed = [i for i in range(head, n - tail) if i not in matched_left]
        added = [j for j in range(head, m - tail) if j not in matched_right]

        moves: list[tuple[int, int]] = []
        if self._detect_move:
            for i in removed:
                for j in added:
                    if right_hashes[j] == left_hashes[i]:
                        moves.append((i, j))
                        added.remove(j)
                        break
        moved_from = {i for i, _ in moves}

        for i in removed:
            if i not in moved_from:
                delta[f"_{i}"] = [copy.deepcopy(left[i]), _DELETED, _DELETED]
        for i, j in moves:
            delta[f"_{i}"] = ["", j, _MOVED]
            self._diff_pair(delta, str(j), left[i], right[j])
        for j in added:
            delta[str(j)] = [copy.deepcopy(right[j])]

        if not delta:
            return None
        return {_ARRAY_MARKER: _ARRAY_TAG, **delta}

    # ------------------------------------------------------------------
    # patch
    # ------------------------------------------------------------------

    def patch(self, left: Any, delta: Delta) -> Any:
        """Apply ``delta`` to a copy of ``left`` and return the result.

        Raises:
            DeltaApplyError: If the delta is malformed or ``left`` is not the
                document the delta was computed against.
        """
        return self._patch(copy.deepcopy(left), delta, [])

    def _patch(self, target: Any, delta: Any, path: list[str]) -> Any:
        if isinstance(delta, list):
            return self._patch_value(target, delta, path)
        if _is_array_delta(delta):
            if not isinstance(target, list):
                raise DeltaApplyError(
                    f"Expected an array, found {type(target).__name__}", _format_path(path)
                )
            self._patch_array(target, delta, path)
            return target
        if isinstance(delta, dict):
            if not isinstance(target, dict):
                raise DeltaApplyError(
                    f"Expected an object, found {type(target).__name__}", _format_path(path)
                )
            self._patch_object(target, delta, path)
            return target
        raise DeltaApplyError(f"Malformed delta node {delta!r}", _format_path(path))

    def _patch_value(self, target: Any, delta: list, path: list[str]) -> Any:
        if len(delta) == 1:
            return copy.deepcopy(delta[0])
        if len(delta) == 2:
            if not json_equal(target, delta[0]):
                raise DeltaApplyError(
                    "Current value differs from the value the delta replaces",
                    _format_path(path),
                )
            return copy.deepcopy(delta[1])
        raise DeltaApplyError(f"Cannot apply {delta!r} to a value", _format_path(path))

    def _patch_object(self, target: dict, delta: dict, path: list[str]) -> None:
        for key, sub in delta.items():
            child = [*path, key]
            where = _format_path(child)
            if isinstance(sub, list) and len(sub) == 1:
                if key in target:
                    raise DeltaApplyError("Cannot add a property that already exists", where)
                target[key] = copy.deepcopy(sub[0])
            elif isinstance(sub, list) and len(sub) == 3:
                if sub[1:] != [_DELETED, _DELETED]:
                    raise DeltaApplyError(f"Malformed delta node {sub!r}", where)
                if key not in target or not json_equal(target[key], sub[0]):
                    raise DeltaApplyError(
                        "Current value differs from the value the delta removes", where
                    )
                del target[key]
            else:
                if key not in target:
                    raise DeltaApplyError("Property to modify does not exist", where)
                target[key] = self._patch(target[key], sub, child)

    def _patch_array(self, target: list, delta: dict, path: list[str]) -> None:
        removals: list[tuple[int, Any, int | None]] = []
        inserts: list[tuple[int, Any]] = []
        modifies: list[tuple[int, Any]] = []
        where = _format_path(path)

        for key, sub in delta.items():
            if key == _ARRAY_MARKER:
                continue
            if key.startswith("_"):
                index = _parse_index(key[1:], where)
                if not isinstance(sub, list) or len(sub) != 3:
                    raise DeltaApplyError(f"Malformed array removal {sub!r}", where)
                if sub[2] == _MOVED:
                    removals.append((index, None, _parse_index(sub[1], where)))
                elif sub[1:] == [_DELETED, _DELETED]:
                    removals.append((index, sub[0], None))
                else:
                    raise DeltaApplyError(f"Malformed array removal {sub!r}", where)
            else:
                index = _parse_index(key, where)
                if isinstance(sub, list) and len(sub) == 1:
                    inserts.append((index, copy.deepcopy(sub[0])))
                else:
                    modifies.append((index, sub))

        for index, old, move_to in sorted(removals, key=lambda r: r[0], reverse=True):
            if index >= len(target):
                raise DeltaApplyError(
                    f"Index {index} out of bounds for array of length {len(target)}", where
                )
            item = target.pop(index)
            if move_to is not None:
                inserts.append((move_to, item))
            elif not json_equal(item, old):
                raise DeltaApplyError(
                    f"Element {index} differs from the element the delta removes", where
                )

        for index, value in sorted(inserts, key=lambda i: i[0]):
            if index > len(target):
                raise DeltaApplyError(
                    f"Index {index} out of bounds for array of length {len(target)}", where
                )
            target.insert(index, value)

        for index, sub in modifies:
            if index >= len(target):
                raise DeltaApplyError(
                    f"Index {index} out of bounds for array of length {len(target)}", where
                )
            target[index] = self._patch(target[index], sub, [*path, str(index)])

    # ------------------------------------------------------------------
    # reverse
    # ------------------------------------------------------------------

    def reverse(self, delta: Delta) -> Delta:
        """Return the inverse delta (``right`` -> ``left``)."""
        if isinstance(delta, list):
            return _reverse_value(delta)
        if _is_array_delta(delta):
            return self._reverse_array(delta)
        return {key: self.reverse(sub) for key, sub in delta.items()}

    def _reverse_array(self, delta: dict) -> dict:
        removed: set[int] = set()
        # right index -> left index it came from (None for plain additions)
        inserted: dict[int, int | None] = {}
        for key, sub in delta.items():
            if key == _ARRAY_MARKER:
                continue
            if key.startswith("_"):
                index = int(key[1:])
                removed.add(index)
                if sub[2] == _MOVED:
                    inserted[int(sub[1])] = index
            elif isinstance(sub, list) and len(sub) == 1:
                inserted[int(key)] = None

        def left_index(right_index: int) -> int | None:
            if right_index in inserted:
                return inserted[right_index]
            rank = right_index - sum(1 for d in inserted if d < right_index)
            candidate, seen = -1, -1
            while seen < rank:
                candidate += 1
                if candidate not in removed:
                    seen += 1
            return candidate

        result: dict[str, Any] = {_ARRAY_MARKER: _ARRAY_TAG}
        for key, sub in delta.items():
            if key == _ARRAY_MARKER:
                continue
            if key.startswith("_"):
                index = int(key[1:])
                if sub[2] == _MOVED:
                    result[f"_{int(sub[1])}"] = ["", index, _MOVED]
                else:
                    result[str(index)] = [sub[0]]
            elif isinstance(sub, list) and len(sub) == 1:
                result[f"_{key}"] = [sub[0], _DELETED, _DELETED]
            else:
                result[str(left_index(int(key)))] = self.reverse(sub)
        return result


def _parse_index(raw: Any, where: str) -> int:
    try:
        index = int(raw)
    except (TypeError, ValueError):
        raise DeltaApplyError(f"Invalid array index {raw!r}", where) from None
    if index < 0:
        raise DeltaApplyError(f"Invalid array index {raw!r}", where)
    return index


def _reverse_value(delta: list) -> list:
    if len(delta) == 1:
        return [delta[0], _DELETED, _DELETED]
    if len(delta) == 2:
        return [delta[1], delta[0]]
    if len(delta) == 3 and delta[2] == _DELETED:
        return [delta[0]]
    raise ValueError(f"Cannot reverse delta node {delta!r}")


# ---------------------------------------------------------------------------
# Module-level helpers bound to a default patcher
# ---------------------------------------------------------------------------

_default_patcher = DiffPatcher()


def compute_delta(original: Any, modified: Any) -> Delta | None:
    """Delta from ``original`` to ``modified``, or None when they are equal."""
    return _default_patcher.diff(original, modified)


def apply_delta(target: Any, delta: Delta) -> Any:
    """Return a new document with ``delta`` applied to ``target``."""
    return _default_patcher.patch(target, delta)


def reverse_delta(delta: Delta) -> Delta:
    """Inverse of ``delta`` (for undo)."""
    return _default_patcher.reverse(delta)


def has_differences(original: Any, modified: Any) -> bool:
    return compute_delta(original, modified) is not None


# ---------------------------------------------------------------------------
# Human-readable change listing
# ---------------------------------------------------------------------------

ChangeType = Literal["added", "removed", "modified"]


@dataclass(frozen=True)
class MetadataChange:
    """A single leaf-level change extracted from a delta.

    Attributes:
        path: Location of the change, with bracketed array indices.
        type: One of "added", "removed", "modified".
        old_value: Previous value (removed/modified).
        new_value: New value (added/modified).
    """

    path: str
    type: ChangeType
    old_value: Any = None
    new_value: Any = None


def delta_to_changes(delta: Delta | None, base_path: str = "") -> list[MetadataChange]:
    """Flatten a delta into a list of leaf changes.

    Array moves are not listed; the moved element's own edits are.
    """
    if not delta:
        return []
    changes: list[MetadataChange] = []

    if _is_array_delta(delta):
        for key, value in delta.items():
            if key == _ARRAY_MARKER:
                continue
            if key.startswith("_"):
                item_path = f"{base_path}[{key[1:]}]"
                if isinstance(value, list) and len(value) == 3 and value[2] == _DELETED:
                    changes.append(MetadataChange(item_path, "removed", old_value=value[0]))
                continue
            item_path = f"{base_path}[{key}]"
            changes.extend(_value_changes(item_path, value))
        return changes

    if isinstance(delta, dict):
        for key, value in delta.items():
            new_path = f"{base_path}.{key}" if base_path else key
            changes.extend(_value_changes(new_path, value))
        return changes

    return _value_changes(base_path, delta)


def _value_changes(path: str, value: Any) -> list[MetadataChange]:
    if isinstance(value, list):
        if len(value) == 1:
            return [MetadataChange(path, "added", new_value=value[0])]
        if len(value) == 2:
            return [MetadataChange(path, "modified", old_value=value[0], new_value=value[1])]
        if len(value) == 3 and value[1] == _DELETED and value[2] == _DELETED:
            return [MetadataChange(path, "removed", old_value=value[0])]
        return []
    if isinstance(value, dict):
        return delta_to_changes(value, path)
    return []


def format_value(value: Any, max_length: int = 50) -> str:
    """Render a value compactly for change summaries."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        if len(value) > max_length:
            return f'"{value[:max_length]}..."'
        return f'"{value}"'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        if not value:
            return "[]"
        preview = json.dumps(value, ensure_ascii=False)
        return f"[{len(value)} items]" if len(preview) > max_length else preview
    if isinstance(value, dict):
        if not value:
            return "{}"
        preview = json.dumps(value, ensure_ascii=False)
        return f"{{{len(value)} fields}}" if len(preview) > max_length else preview
    return str(value)


def change_to_description(change: MetadataChange) -> str:
    if change.type == "added":
        return f"Added {change.path}: {format_value(change.new_value)}"
    if change.type == "removed":
        return f"Removed {change.path}"
    return (
        f"Changed {change.path}: {format_value(change.old_value)} -> "
        f"{format_value(change.new_value)}"
    )
