"""Typed parameter models for the built-in tools.

Raw tool-call arguments are validated here before any handler runs, so
handlers only ever see well-formed, typed input.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from dandiset_assistant.document.operations import MISSING, OperationType

MAX_ONTOLOGY_RESULTS = 10


class MetadataOperation(BaseModel):
    """One requested document operation.

    ``value`` is optional: ``provided_value`` distinguishes an omitted value
    from an explicit JSON null.
    """

    operation: OperationType = OperationType.SET
    path: str
    value: Any = None

    @property
    def provided_value(self) -> Any:
        return self.value if "value" in self.model_fields_set else MISSING


class ProposeMetadataChangeParams(BaseModel):
    changes: list[MetadataOperation] = Field(min_length=1)
    explanation: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _single_change_form(cls, data: Any) -> Any:
        """Accept ``{path, newValue}`` as shorthand for one "set" change."""
        if isinstance(data, dict) and "changes" not in data and "path" in data:
            change: dict[str, Any] = {"operation": "set", "path": data["path"]}
            if "newValue" in data:
                change["value"] = data["newValue"]
            elif "value" in data:
                change["value"] = data["value"]
            return {"changes": [change], "explanation": data.get("explanation")}
        return data


class FetchUrlParams(BaseModel):
    url: str = Field(min_length=1)
    reason: Optional[str] = None


class LookupOntologyTermParams(BaseModel):
    term: str
    category: Literal["anatomy", "disorder", "auto"] = "auto"
    max_results: int = Field(
        default=5, validation_alias=AliasChoices("max_results", "maxResults")
    )

    @field_validator("max_results", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return min(max(1, int(value)), MAX_ONTOLOGY_RESULTS)
        return value
