"""Dandiset assistant CLI -- terminal front end for the metadata assistant.

This module is NEVER imported from dandiset_assistant/__init__.py.
It is only loaded via the ``dandiset-assistant`` entry point defined in
pyproject.toml.
"""

from __future__ import annotations

import json
import logging
from typing import Any

try:
    import click
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. "
        "Install with: pip install dandiset-metadata-assistant[cli]"
    ) from None

from dandiset_assistant.cli.formatting import format_error, get_console
from dandiset_assistant.config import AssistantConfig


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.option(
    "--gateway-url",
    default=None,
    envvar="DANDISET_ASSISTANT_GATEWAY_URL",
    help="Completion gateway endpoint.",
)
@click.option(
    "--api-key",
    default=None,
    envvar="DANDISET_ASSISTANT_OPENROUTER_API_KEY",
    help="OpenRouter API key (needed for non-default models).",
)
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, gateway_url: str | None, api_key: str | None
) -> None:
    """Review and propose DANDI dandiset metadata edits with an LLM assistant."""
    if verbose:
        from rich.console import Console
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )
    ctx.ensure_object(dict)
    ctx.obj["config"] = AssistantConfig.from_env(
        gateway_url=gateway_url, openrouter_api_key=api_key
    )


def _load_json(path: str) -> Any:
    """Read a JSON file, exiting with a formatted error on failure."""
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as e:
        format_error(f"Cannot read {path}: {e}", get_console())
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from dandiset_assistant.cli.commands.diff import diff  # noqa: E402
from dandiset_assistant.cli.commands.propose import propose  # noqa: E402
from dandiset_assistant.cli.commands.review import review  # noqa: E402
from dandiset_assistant.cli.commands.chat import chat  # noqa: E402

cli.add_command(diff)
cli.add_command(propose)
cli.add_command(review)
cli.add_command(chat)
