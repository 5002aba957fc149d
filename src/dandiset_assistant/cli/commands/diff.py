"""dandiset-assistant diff -- compare two metadata files."""

from __future__ import annotations

import click

from dandiset_assistant.cli.formatting import format_changes, format_json, get_console
from dandiset_assistant.document.diff import compute_delta, delta_to_changes


@click.command()
@click.argument("original", type=click.Path(exists=True, dir_okay=False))
@click.argument("modified", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the raw delta instead of a table.")
def diff(original: str, modified: str, as_json: bool) -> None:
    """Show the changes from ORIGINAL to MODIFIED metadata JSON."""
    from dandiset_assistant.cli import _load_json

    console = get_console()
    delta = compute_delta(_load_json(original), _load_json(modified))
    if as_json:
        format_json(delta, console)
        return
    format_changes(delta_to_changes(delta), console)
