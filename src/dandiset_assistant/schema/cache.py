"""Per-version cache of DANDI metadata JSON schemas.

The cache is an explicitly constructed object (no module-level state):
schemas are fetched on first use, kept until ``clear()``, and when a
fetch fails any previously cached version is served instead.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import httpx

from dandiset_assistant.exceptions import SchemaUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_VERSION = "0.7.0"
DEFAULT_SCHEMA_BASE_URL = "https://raw.githubusercontent.com/dandi/schema/refs/heads/master/releases"


class SchemaCache:
    """Fetches ``<base_url>/<version>/dandiset.json`` and caches the result.

    Args:
        base_url: Root of the schema releases.
        default_version: Version used when none is requested.
        http_client: Optional pre-built httpx client (caller owns it).
        timeout: Fetch timeout in seconds when the cache builds its own client.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SCHEMA_BASE_URL,
        default_version: str = DEFAULT_SCHEMA_VERSION,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self.default_version = default_version
        self._http_client = http_client
        self._timeout = timeout
        self._schemas: dict[str, dict] = {}
        self._lock = threading.Lock()

    def url_for(self, version: str | None = None) -> str:
        return f"{self._base_url}/{version or self.default_version}/dandiset.json"

    def __contains__(self, version: str) -> bool:
        return version in self._schemas

    def cached(self, version: str | None = None) -> dict | None:
        """Return the cached schema without fetching."""
        return self._schemas.get(version or self.default_version)

    def put(self, version: str, schema: dict) -> None:
        """Seed the cache (e.g. from a bundled copy)."""
        with self._lock:
            self._schemas[version] = schema

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()

    def get(self, version: str | None = None) -> dict:
        """Return the schema for ``version``, fetching it on first use.

        Raises:
            SchemaUnavailableError: If the fetch fails and nothing is cached.
        """
        version = version or self.default_version
        with self._lock:
            if version in self._schemas:
                return self._schemas[version]
            try:
                schema = self._fetch(version)
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Failed to fetch schema v%s: %s", version, exc)
                if self._schemas:
                    fallback_version, fallback = next(iter(self._schemas.items()))
                    logger.warning("Falling back to cached schema v%s", fallback_version)
                    return fallback
                raise SchemaUnavailableError(version, str(exc)) from exc
            self._schemas[version] = schema
            return schema

    def _fetch(self, version: str) -> dict:
        url = self.url_for(version)
        logger.debug("Fetching metadata schema from %s", url)
        if self._http_client is not None:
            response = self._http_client.get(url)
        else:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.get(url)
        response.raise_for_status()
        schema: Any = response.json()
        if not isinstance(schema, dict):
            raise ValueError(f"Schema v{version} is not a JSON object")
        return schema
