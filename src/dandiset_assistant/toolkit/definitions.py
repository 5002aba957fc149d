"""Hand-crafted definitions of the assistant's tools.

Each definition pairs a JSON Schema for the model with a pydantic
parameter model, a handler bound to the injected collaborators (HTTP
client, schema validator), and a usage guide for the system prompt.
Handlers report failures inside their JSON result so the model can
correct itself; only unexpected errors escape to the executor.
"""

from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import Callable, Iterator
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

import httpx

from dandiset_assistant.document.operations import MISSING, apply_operation, get_value
from dandiset_assistant.document.paths import parse_path
from dandiset_assistant.schema.validate import DEFAULT_READ_ONLY_FIELDS, format_issues
from dandiset_assistant.toolkit import web
from dandiset_assistant.toolkit.models import ToolDefinition
from dandiset_assistant.toolkit.params import (
    FetchUrlParams,
    LookupOntologyTermParams,
    ProposeMetadataChangeParams,
)

if TYPE_CHECKING:
    from dandiset_assistant.schema.validate import MetadataValidator
    from dandiset_assistant.toolkit.models import ToolExecutionContext

logger = logging.getLogger(__name__)


def _dumps(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)


# ---------------------------------------------------------------------------
# propose_metadata_change
# ---------------------------------------------------------------------------

PROPOSE_USAGE_GUIDE = """Use this tool to propose changes to the dandiset metadata.

**Usage:**
- Pass a list of `changes`; each has an `operation`, a `path` and (except for delete) a `value`
- Operations: "set" (replace or create a field), "delete" (remove an array item),
  "insert" (insert an array item before the given index), "append" (add to the end of an array)
- Paths use dot notation with numeric array indices (e.g., "contributor.0.name", "keywords.2")
- Optionally include an explanation for the changes

**Examples:**
- Change the name: { "changes": [{ "operation": "set", "path": "name", "value": "New Dandiset Name" }] }
- Add a keyword: { "changes": [{ "operation": "append", "path": "keywords", "value": "neural-data" }] }
- Remove the first keyword: { "changes": [{ "operation": "delete", "path": "keywords.0" }] }

**Notes:**
- Each change is applied independently; the result lists success or the error for every change
- Failed changes are not retried automatically. Read the error and send a corrected change
- Changes are applied to the working copy and shown to the user as pending modifications

**Read-only fields (cannot be modified):**
The following fields are managed by the DANDI system and cannot be changed:
{read_only}"""

_PROPOSE_PARAMETERS = {
    "type": "object",
    "properties": {
        "changes": {
            "type": "array",
            "description": "The changes to apply, in order.",
            "items": {
                "type": "object",
                "properties": {
                    "operation": {
                        "type": "string",
                        "enum": ["set", "delete", "insert", "append"],
                        "description": "The kind of change. Defaults to 'set'.",
                    },
                    "path": {
                        "type": "string",
                        "description": (
                            "Dot-notation path to the field "
                            "(e.g., 'name', 'contributor.0.name', 'keywords.2')."
                        ),
                    },
                    "value": {
                        "description": (
                            "The value for set/insert/append. Can be a string, number, "
                            "boolean, array, or object depending on the field type."
                        ),
                    },
                },
                "required": ["path"],
            },
        },
        "explanation": {
            "type": "string",
            "description": "A brief explanation of why these changes are proposed.",
        },
    },
    "required": ["changes"],
}


def _handle_propose(
    params: ProposeMetadataChangeParams,
    context: ToolExecutionContext,
    *,
    validator: MetadataValidator | None,
    read_only_fields: Callable[[], frozenset[str]],
) -> str:
    if not context.document:
        return _dumps({
            "success": False,
            "error": "No metadata is currently loaded. Please load a dandiset first.",
        })

    locked = read_only_fields()
    results: list[dict[str, Any]] = []
    for index, change in enumerate(params.changes):
        record: dict[str, Any] = {
            "index": index,
            "operation": change.operation.value,
            "path": change.path,
        }
        results.append(record)
        value = change.provided_value
        parts = parse_path(change.path)
        root = parts[0] if parts else ""
        if root in locked:
            record.update(
                success=False,
                error=(
                    f'The field "{root}" is read-only and cannot be modified. '
                    "Read-only fields are automatically managed by the DANDI system."
                ),
            )
            continue

        old_value = get_value(context.document, change.path, MISSING)
        if validator is not None:
            preview = apply_operation(context.document, change.operation, change.path, value)
            if preview.success:
                issues = validator.validate_change(preview.data, change.path)
                if issues:
                    record.update(
                        success=False,
                        error="Schema validation failed: " + "; ".join(format_issues(issues)),
                        validationErrors=[asdict(issue) for issue in issues],
                    )
                    continue

        outcome = context.modify(change.operation, change.path, value)
        if not outcome.success:
            record.update(success=False, error=outcome.error)
            continue
        record.update(
            success=True,
            oldValue="(not set)" if old_value is MISSING else old_value,
        )
        if value is not MISSING:
            record["newValue"] = value

    applied = sum(1 for record in results if record["success"])
    failed = len(results) - applied
    response: dict[str, Any] = {
        "success": failed == 0,
        "applied": applied,
        "failed": failed,
        "results": results,
        "message": (
            f"Applied {applied} of {len(results)} change(s). "
            + ("The changes are now pending user review." if applied else "")
        ).strip(),
    }
    if params.explanation:
        response["explanation"] = params.explanation
    return _dumps(response)


# ---------------------------------------------------------------------------
# fetch_url
# ---------------------------------------------------------------------------

FETCH_USAGE_GUIDE = """Use this tool to fetch content from external URLs when you need to retrieve information from scientific articles, publications, or other external resources.

**IMPORTANT: Always use this tool when a user asks you to get information from an external URL. Never fabricate or hallucinate information - if you cannot fetch the URL, tell the user.**

**Usage:**
- Provide the URL you want to fetch
- Optionally explain why you need to fetch it

**Allowed domains:**
This tool only works with approved scientific/academic domains including:
- Scientific journals (eLife, Nature, Science, Cell, PNAS, PLOS, etc.)
- Preprint servers (bioRxiv, medRxiv, arXiv)
- DOI resolvers (doi.org) and OpenAlex
- PubMed/NIH resources
- GitHub, DANDI Archive, Wikipedia

**Examples:**
- Fetch an eLife article: { "url": "https://elifesciences.org/articles/78362", "reason": "To extract metadata for the dandiset" }
- Resolve a DOI: { "url": "https://doi.org/10.7554/eLife.78362", "reason": "To get publication details" }

**Notes:**
- Content is returned as text extracted from the webpage
- Very long content will be truncated
- If fetching fails, an error message will explain why
- Always verify the fetched content before using it to propose metadata changes"""


def _handle_fetch_url(
    params: FetchUrlParams,
    context: ToolExecutionContext,
    *,
    client: Callable[[], contextlib.AbstractContextManager[httpx.Client]],
) -> str:
    url = params.url
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        parsed = None
    if parsed is None or parsed.scheme not in ("http", "https") or not parsed.host:
        return _dumps({
            "success": False,
            "error": f'Invalid URL format: "{url}". Please provide a valid URL.',
        })
    if not web.is_url_allowed(url):
        return _dumps({
            "success": False,
            "error": (
                f'Domain not allowed: "{parsed.host}". For security reasons, only URLs '
                "from allowed scientific publication domains can be fetched. Allowed "
                f"domains include: {', '.join(web.ALLOWED_DOMAINS[:10])}, and others."
            ),
        })
    try:
        with client() as http:
            page = web.fetch_page(http, url)
    except httpx.HTTPStatusError as exc:
        return _dumps({
            "success": False,
            "error": (
                f"Failed to fetch URL: HTTP {exc.response.status_code} "
                f"{exc.response.reason_phrase}"
            ),
            "url": url,
        })
    except httpx.HTTPError as exc:
        return _dumps({
            "success": False,
            "error": f"Error fetching URL: {exc}",
            "url": url,
            "hint": (
                "The URL might be inaccessible or the server might be down. "
                "Please verify the URL is correct."
            ),
        })
    return _dumps({
        "success": True,
        "url": url,
        "reason": params.reason or "Not specified",
        "contentLength": page.content_length,
        "truncated": page.truncated,
        "content": page.content,
    })


# ---------------------------------------------------------------------------
# lookup_ontology_term
# ---------------------------------------------------------------------------

# ontology -> (OLS id, DANDI schemaKey)
ONTOLOGIES: dict[str, tuple[str, str]] = {
    "UBERON": ("uberon", "Anatomy"),
    "DOID": ("doid", "Disorder"),
    "NCIT": ("ncit", "Disorder"),
    "HP": ("hp", "Disorder"),
    "CL": ("cl", "Anatomy"),
}

CATEGORY_ONTOLOGIES: dict[str, tuple[str, ...]] = {
    "anatomy": ("UBERON", "CL"),
    "disorder": ("DOID", "HP", "NCIT"),
    "auto": ("UBERON", "DOID", "HP", "CL"),
}

LOOKUP_USAGE_GUIDE = """Use this tool to look up validated ontology terms when users mention brain regions, anatomical structures, diseases, or disorders.

**IMPORTANT: Always use this tool to get the correct ontology identifier before proposing changes to the 'about' field. Never guess or fabricate ontology identifiers.**

**Usage:**
- Search for a term (e.g., "hippocampus", "Parkinson disease")
- Optionally specify a category: "anatomy" or "disorder"
- The tool returns validated identifiers that conform to the DANDI schema

**Ontologies searched:**
- **Anatomy**: UBERON (anatomical structures), CL (cell types)
- **Disorder**: DOID (diseases), HP (phenotypes), NCIT (NCI thesaurus)

**Examples:**
- Look up a brain region: { "term": "hippocampus", "category": "anatomy" }
- Look up a disease: { "term": "Parkinson", "category": "disorder" }
- Auto-detect category: { "term": "epilepsy" }

**Workflow:**
1. User mentions a brain area or disease
2. Use this tool to find the validated ontology term
3. Present options to the user if multiple matches exist
4. Use propose_metadata_change to append the selected term to the "about" array

**Result format:**
Each result includes:
- identifier: The URI to use in propose_metadata_change
- name: Human-readable label
- schemaKey: "Anatomy" or "Disorder" (determines the type for the about field)
- ontology: Source ontology (UBERON, DOID, etc.)
- description: Optional definition of the term"""


def rank_terms(results: list[dict[str, Any]], term: str) -> list[dict[str, Any]]:
    """Order matches: exact label, then label prefix, then shorter labels."""
    needle = term.lower()

    def key(result: dict[str, Any]) -> tuple[int, int, int]:
        label = result["name"].lower()
        return (label != needle, not label.startswith(needle), len(label))

    return sorted(results, key=key)


def _handle_lookup(
    params: LookupOntologyTermParams,
    context: ToolExecutionContext,
    *,
    client: Callable[[], contextlib.AbstractContextManager[httpx.Client]],
) -> str:
    term = params.term.strip()
    if not term:
        return _dumps({"success": False, "error": "Please provide a search term."})

    found: list[dict[str, Any]] = []
    failures: list[str] = []
    with client() as http:
        searches: list[tuple[str, str, list[dict[str, Any]]]] = []
        for ontology in CATEGORY_ONTOLOGIES[params.category]:
            ols_id, schema_key = ONTOLOGIES[ontology]
            try:
                docs = web.search_ols(http, term, ols_id, params.max_results)
            except (httpx.HTTPError, ValueError) as exc:
                logger.debug("OLS search in %s failed: %s", ontology, exc)
                failures.append(ontology)
                continue
            searches.append((ontology, schema_key, docs))

    for ontology, schema_key, docs in searches:
        for doc in docs:
            if not doc.get("iri") or not doc.get("label"):
                continue
            entry: dict[str, Any] = {
                "identifier": doc["iri"],
                "name": doc["label"],
                "schemaKey": schema_key,
                "ontology": ontology,
            }
            description = doc.get("description")
            if isinstance(description, list) and description:
                entry["description"] = description[0]
            if doc.get("obo_id"):
                entry["oboId"] = doc["obo_id"]
            found.append(entry)

    if not found:
        if failures and len(failures) == len(CATEGORY_ONTOLOGIES[params.category]):
            return _dumps({
                "success": False,
                "error": "Error searching ontologies: the lookup service did not respond.",
                "hint": "The OLS API might be temporarily unavailable. Please try again later.",
            })
        return _dumps({
            "success": True,
            "term": term,
            "category": params.category,
            "results": [],
            "message": (
                f'No matching terms found for "{term}". '
                "Try different search terms or check spelling."
            ),
        })

    ranked = rank_terms(found, term)[: params.max_results]
    best = ranked[0]
    example = {
        "schemaKey": best["schemaKey"],
        "identifier": best["identifier"],
        "name": best["name"],
    }
    return _dumps({
        "success": True,
        "term": term,
        "category": params.category,
        "resultsCount": len(ranked),
        "totalFound": len(found),
        "results": ranked,
        "usage": (
            "To add a term to the dandiset metadata, use propose_metadata_change with "
            f'operation "append", path "about" and value {json.dumps(example)}'
        ),
    })


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def get_all_tools(
    http_client: httpx.Client | None = None,
    validator: MetadataValidator | None = None,
) -> list[ToolDefinition]:
    """Build the assistant's tool definitions.

    Each call returns fresh handlers bound to the given collaborators.
    No module-level references to them are stored.

    Args:
        http_client: Client for outbound requests, owned by the caller.
            When None, each tool call opens a short-lived client and
            closes it before returning.
        validator: Schema validator for proposed changes; also the source
            of the read-only field list. When None, changes are not
            schema-checked and the static read-only list applies.

    Returns:
        The propose, fetch and lookup tool definitions.
    """
    @contextlib.contextmanager
    def client() -> Iterator[httpx.Client]:
        if http_client is not None:
            yield http_client
            return
        with httpx.Client(timeout=web.DEFAULT_TIMEOUT) as owned:
            yield owned

    def read_only_fields() -> frozenset[str]:
        return validator.read_only_fields() if validator is not None else DEFAULT_READ_ONLY_FIELDS

    return [
        ToolDefinition(
            name="propose_metadata_change",
            description=(
                "Propose one or more changes to the dandiset metadata. Each change is "
                "applied to the working copy independently and reported individually; "
                "the user reviews all pending changes before committing them."
            ),
            parameters=_PROPOSE_PARAMETERS,
            params_model=ProposeMetadataChangeParams,
            handler=lambda params, context: _handle_propose(
                params, context, validator=validator, read_only_fields=read_only_fields
            ),
            usage_guide=PROPOSE_USAGE_GUIDE.replace(
                "{read_only}", ", ".join(sorted(read_only_fields()))
            ),
        ),
        ToolDefinition(
            name="fetch_url",
            description=(
                "Fetch content from an external URL to retrieve information. Use this tool "
                "when you need to get data from a scientific article, publication, or other "
                "external resource. The content will be returned as text that you can then "
                "analyze to extract relevant metadata."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "url": {
                        "type": "string",
                        "description": (
                            "The URL to fetch content from. Must be a valid URL from an "
                            "allowed domain (scientific publications, DOI resolvers, etc.)."
                        ),
                    },
                    "reason": {
                        "type": "string",
                        "description": (
                            "A brief explanation of why you need to fetch this URL and what "
                            "information you're looking for."
                        ),
                    },
                },
                "required": ["url"],
            },
            params_model=FetchUrlParams,
            handler=lambda params, context: _handle_fetch_url(params, context, client=client),
            usage_guide=FETCH_USAGE_GUIDE,
        ),
        ToolDefinition(
            name="lookup_ontology_term",
            description=(
                "Look up validated ontology terms for brain regions, anatomical structures, "
                "diseases, or disorders. Returns standardized identifiers (URIs) that can be "
                "used with propose_metadata_change to add entries to the 'about' field."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "term": {
                        "type": "string",
                        "description": (
                            "The term to search for (e.g., 'hippocampus', "
                            "'Parkinson disease', 'visual cortex')"
                        ),
                    },
                    "category": {
                        "type": "string",
                        "enum": ["anatomy", "disorder", "auto"],
                        "description": (
                            "'anatomy' searches UBERON and CL, 'disorder' searches DOID, HP "
                            "and NCIT, 'auto' searches UBERON, DOID, HP and CL. Default is 'auto'."
                        ),
                    },
                    "max_results": {
                        "type": "integer",
                        "description": "Maximum number of results to return (1-10). Default is 5.",
                    },
                },
                "required": ["term"],
            },
            params_model=LookupOntologyTermParams,
            handler=lambda params, context: _handle_lookup(params, context, client=client),
            usage_guide=LOOKUP_USAGE_GUIDE,
        ),
    ]
