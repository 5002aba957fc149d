"""Schema validation boundary for candidate metadata documents.

``MetadataValidator.validate(candidate)`` returns a list of issues and
never raises; when no schema can be obtained the document is treated as
valid and the condition is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jsonschema
from jsonschema.protocols import Validator

from dandiset_assistant.document.paths import parse_path
from dandiset_assistant.exceptions import SchemaUnavailableError
from dandiset_assistant.schema.cache import SchemaCache

logger = logging.getLogger(__name__)

# Managed by the archive; used when the schema does not mark them itself.
DEFAULT_READ_ONLY_FIELDS: frozenset[str] = frozenset({
    "id",
    "schemaVersion",
    "url",
    "repository",
    "identifier",
    "dateCreated",
    "dateModified",
    "citation",
    "assetsSummary",
    "manifestLocation",
    "version",
    "access",
})


@dataclass(frozen=True)
class ValidationIssue:
    """One schema violation.

    Attributes:
        path: JSON-pointer style location ("/" for the document root).
        message: Validator message.
        keyword: Schema keyword that failed (e.g. "required", "enum").
    """

    path: str
    message: str
    keyword: str

    def __str__(self) -> str:
        return f"Error at {self.path}: {self.message}"


def format_issues(issues: list[ValidationIssue]) -> list[str]:
    return [str(issue) for issue in issues]


def _pointer(parts: Any) -> str:
    return "/" + "/".join(str(part) for part in parts) if parts else "/"


class MetadataValidator:
    """Validates documents against a cached DANDI schema version.

    Args:
        cache: Schema source.
        version: Schema version (defaults to the cache's default).
    """

    def __init__(self, cache: SchemaCache, version: str | None = None) -> None:
        self._cache = cache
        self._version = version or cache.default_version
        self._compiled: dict[str, Validator] = {}

    @property
    def version(self) -> str:
        return self._version

    def _validator(self) -> Validator | None:
        if self._version in self._compiled:
            return self._compiled[self._version]
        try:
            schema = self._cache.get(self._version)
        except SchemaUnavailableError as exc:
            logger.warning("Skipping schema validation: %s", exc)
            return None
        validator_cls = jsonschema.validators.validator_for(
            schema, default=jsonschema.Draft7Validator
        )
        validator = validator_cls(schema, format_checker=validator_cls.FORMAT_CHECKER)
        self._compiled[self._version] = validator
        return validator

    def validate(self, candidate: Any) -> list[ValidationIssue]:
        """Return every schema violation in ``candidate`` (empty if valid)."""
        validator = self._validator()
        if validator is None:
            return []
        issues = [
            ValidationIssue(
                path=_pointer(error.absolute_path),
                message=error.message,
                keyword=str(error.validator),
            )
            for error in validator.iter_errors(candidate)
        ]
        issues.sort(key=lambda issue: issue.path)
        return issues

    def validate_change(self, candidate: Any, path: str) -> list[ValidationIssue]:
        """Violations that concern the top-level field ``path`` falls under.

        Unrelated pre-existing problems elsewhere in the document are not
        reported, so an already-invalid draft can still be improved field
        by field.
        """
        parts = parse_path(path)
        if not parts:
            return self.validate(candidate)
        root = parts[0]
        prefix = f"/{root}"
        return [
            issue
            for issue in self.validate(candidate)
            if issue.path == prefix
            or issue.path.startswith(prefix + "/")
            or (issue.path == "/" and f"'{root}'" in issue.message)
        ]

    def read_only_fields(self) -> frozenset[str]:
        """Top-level properties marked ``readOnly`` in the schema.

        Falls back to the static list when the schema is unavailable or
        marks nothing.
        """
        schema = self._cache.cached(self._version)
        if schema is None:
            return DEFAULT_READ_ONLY_FIELDS
        properties = schema.get("properties") or {}
        marked = frozenset(
            name
            for name, spec in properties.items()
            if isinstance(spec, dict) and spec.get("readOnly")
        )
        return marked or DEFAULT_READ_ONLY_FIELDS
