"""Configuration for the metadata assistant.

AssistantConfig holds gateway, retry, schema and docs settings.
DandiInstance describes one archive deployment; the static table below
lists the known ones.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field

from dandiset_assistant.llm.catalog import DEFAULT_MODEL
from dandiset_assistant.llm.client import DEFAULT_GATEWAY_URL
from dandiset_assistant.schema.cache import DEFAULT_SCHEMA_BASE_URL, DEFAULT_SCHEMA_VERSION

logger = logging.getLogger(__name__)

ENV_PREFIX = "DANDISET_ASSISTANT_"

DEFAULT_DOCS_URL = (
    "https://raw.githubusercontent.com/dandi/dandi-docs/refs/heads/master/"
    "docs/user-guide-sharing/dandiset-metadata.md"
)


@dataclass(frozen=True)
class DandiInstance:
    """A DANDI archive deployment."""

    name: str
    api_url: str
    web_url: str


DANDI_INSTANCES: tuple[DandiInstance, ...] = (
    DandiInstance(
        "DANDI Production",
        "https://api.dandiarchive.org/api",
        "https://dandiarchive.org",
    ),
    DandiInstance(
        "DANDI Sandbox",
        "https://api.sandbox.dandiarchive.org/api",
        "https://sandbox.dandiarchive.org",
    ),
    DandiInstance(
        "EMBER",
        "https://api-dandi.emberarchive.org/api",
        "https://dandi.emberarchive.org",
    ),
)

DEFAULT_INSTANCE = DANDI_INSTANCES[0]


def get_instance_by_api_url(api_url: str) -> DandiInstance | None:
    """Find a known instance by API URL (trailing slashes ignored)."""
    wanted = api_url.rstrip("/")
    for instance in DANDI_INSTANCES:
        if instance.api_url == wanted:
            return instance
    return None


class AssistantConfig(BaseModel):
    """Settings for one assistant session.

    Example::

        config = AssistantConfig.from_env()
        session = AssistantSession(config)
    """

    model_config = {"validate_assignment": True}

    gateway_url: str = DEFAULT_GATEWAY_URL
    openrouter_api_key: Optional[str] = None
    app_name: str = "dandiset-metadata-assistant"
    default_model: str = DEFAULT_MODEL
    request_timeout: float = Field(default=120.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=10.0, ge=0)
    max_turns: int = Field(default=25, ge=1)
    schema_version: str = DEFAULT_SCHEMA_VERSION
    schema_base_url: str = DEFAULT_SCHEMA_BASE_URL
    docs_url: str = DEFAULT_DOCS_URL
    instance_api_url: str = DEFAULT_INSTANCE.api_url
    # Base URL of the review page that proposal links point at.
    app_url: Optional[str] = None

    @property
    def instance(self) -> DandiInstance | None:
        return get_instance_by_api_url(self.instance_api_url)

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> AssistantConfig:
        """Build a config from ``DANDISET_ASSISTANT_*`` variables.

        Each field maps to the upper-cased field name with the prefix, e.g.
        ``DANDISET_ASSISTANT_MAX_RETRIES``. Keyword overrides win over the
        environment; pydantic coerces the string values.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update({key: value for key, value in overrides.items() if value is not None})
        logger.debug("Loaded config fields from environment: %s", sorted(values))
        return cls(**values)
