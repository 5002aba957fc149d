"""HTTP helpers used by the fetch and ontology lookup tools."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Any
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

ALLOWED_DOMAINS: tuple[str, ...] = (
    "elifesciences.org",
    "doi.org",
    "pubmed.ncbi.nlm.nih.gov",
    "ncbi.nlm.nih.gov",
    "biorxiv.org",
    "medrxiv.org",
    "arxiv.org",
    "nature.com",
    "science.org",
    "cell.com",
    "pnas.org",
    "plos.org",
    "frontiersin.org",
    "springer.com",
    "wiley.com",
    "sciencedirect.com",
    "nih.gov",
    "github.com",
    "dandiarchive.org",
    "wikipedia.org",
    "crossref.org",
    "openalex.org",
)

MAX_CONTENT_LENGTH = 15_000
TRUNCATION_NOTICE = "\n\n[Content truncated due to length...]"
USER_AGENT = "DandisetMetadataAssistant/1.0"
OLS_SEARCH_URL = "https://www.ebi.ac.uk/ols4/api/search"
DEFAULT_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# URL fetching
# ---------------------------------------------------------------------------


def is_url_allowed(url: str, allowed_domains: tuple[str, ...] = ALLOWED_DOMAINS) -> bool:
    """True if ``url``'s host is an allowed domain or a subdomain of one."""
    hostname = (urlsplit(url).hostname or "").lower()
    if not hostname:
        return False
    return any(hostname == domain or hostname.endswith("." + domain) for domain in allowed_domains)


class _TextExtractor(HTMLParser):
    """Collects text content, skipping script and style elements."""

    _SKIPPED = {"script", "style", "noscript", "template"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in self._SKIPPED:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in self._SKIPPED and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._parts.append(data)

    def get_text(self) -> str:
        return " ".join(self._parts)


def html_to_text(html: str) -> str:
    """Readable text of an HTML page with whitespace collapsed."""
    extractor = _TextExtractor()
    extractor.feed(html)
    extractor.close()
    return re.sub(r"\s+", " ", extractor.get_text()).strip()


@dataclass(frozen=True)
class FetchedPage:
    url: str
    content: str
    content_length: int
    truncated: bool


def fetch_page(
    client: httpx.Client, url: str, max_length: int = MAX_CONTENT_LENGTH
) -> FetchedPage:
    """GET ``url`` and return its readable text, truncated to ``max_length``.

    Raises:
        httpx.HTTPStatusError: On a non-success status.
        httpx.HTTPError: On network failures.
    """
    response = client.get(
        url,
        headers={
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "User-Agent": USER_AGENT,
        },
        follow_redirects=True,
    )
    response.raise_for_status()
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        content = json.dumps(response.json(), indent=2, ensure_ascii=False)
    elif "html" in content_type or response.text.lstrip().startswith("<"):
        content = html_to_text(response.text)
    else:
        content = response.text
    truncated = len(content) > max_length
    return FetchedPage(
        url=url,
        content=content[:max_length] + TRUNCATION_NOTICE if truncated else content,
        content_length=len(content),
        truncated=truncated,
    )


# ---------------------------------------------------------------------------
# EBI Ontology Lookup Service
# ---------------------------------------------------------------------------


def search_ols(
    client: httpx.Client, term: str, ontology_id: str, rows: int
) -> list[dict[str, Any]]:
    """Search one ontology in OLS by label and synonym.

    Raises:
        httpx.HTTPError: If the service fails or is unreachable.
    """
    response = client.get(
        OLS_SEARCH_URL,
        params={
            "q": term,
            "ontology": ontology_id,
            "rows": str(rows),
            "exact": "false",
            "queryFields": "label,synonym",
        },
        headers={"Accept": "application/json"},
    )
    response.raise_for_status()
    docs = (response.json().get("response") or {}).get("docs") or []
    return [doc for doc in docs if isinstance(doc, dict)]
