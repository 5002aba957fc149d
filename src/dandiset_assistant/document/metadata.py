"""Original/modified snapshot pair for the metadata under edit.

``MetadataDocument`` is the single writer of the working copy: tools
and proposal review reach the document only through ``modify`` and
``replace``, never by mutating the snapshots.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any

from dandiset_assistant.document.diff import (
    Delta,
    MetadataChange,
    compute_delta,
    delta_to_changes,
)
from dandiset_assistant.document.hashing import compute_hash
from dandiset_assistant.document.operations import (
    MISSING,
    OperationResult,
    OperationType,
    apply_operation,
)

logger = logging.getLogger(__name__)


class MetadataDocument:
    """A dandiset's metadata as loaded, plus the locally edited version.

    Args:
        original: Metadata as published by the archive. Deep-copied.
        dandiset_id: Archive identifier (e.g. "000123").
        version: Dandiset version ("draft" unless viewing a release).
    """

    def __init__(
        self,
        original: dict | None = None,
        dandiset_id: str | None = None,
        version: str = "draft",
    ) -> None:
        self.dandiset_id = dandiset_id
        self.version = version
        self._original: dict = copy.deepcopy(original) if original is not None else {}
        self._modified: dict = self._original
        self._lock = threading.Lock()

    @property
    def original(self) -> dict:
        return self._original

    @property
    def document(self) -> dict:
        """The current (possibly modified) metadata."""
        return self._modified

    def load(self, original: dict, dandiset_id: str | None = None, version: str = "draft") -> None:
        """Replace both snapshots with freshly loaded metadata."""
        with self._lock:
            self._original = copy.deepcopy(original)
            self._modified = self._original
            self.dandiset_id = dandiset_id
            self.version = version

    def modify(
        self,
        operation: OperationType | str,
        path: str,
        value: Any = MISSING,
    ) -> OperationResult:
        """Apply one operation to the working copy.

        The working copy is only replaced when the operation succeeds.
        """
        with self._lock:
            result = apply_operation(self._modified, operation, path, value)
            if result.success:
                self._modified = result.data
            else:
                logger.debug("Rejected %s at %r: %s", operation, path, result.error)
            return result

    def replace(self, modified: dict) -> None:
        """Install a whole new working copy (e.g. an accepted proposal)."""
        with self._lock:
            self._modified = modified

    def revert_field(self, key: str) -> None:
        """Restore one top-level field to its original value."""
        with self._lock:
            updated = dict(self._modified)
            if key in self._original:
                updated[key] = copy.deepcopy(self._original[key])
            else:
                updated.pop(key, None)
            self._modified = updated

    def clear_modifications(self) -> None:
        with self._lock:
            self._modified = self._original

    @property
    def has_changes(self) -> bool:
        return self._modified is not self._original and self.delta() is not None

    def delta(self) -> Delta | None:
        return compute_delta(self._original, self._modified)

    def changes(self) -> list[MetadataChange]:
        return delta_to_changes(self.delta())

    def original_hash(self) -> str:
        return compute_hash(self._original)
