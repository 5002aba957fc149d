"""dandiset-assistant propose -- encode local edits as a review link."""

from __future__ import annotations

import click

from dandiset_assistant.cli.formatting import get_console
from dandiset_assistant.proposal.codec import encode_proposal
from dandiset_assistant.proposal.link import create_proposal_link


@click.command()
@click.argument("original", type=click.Path(exists=True, dir_okay=False))
@click.argument("modified", type=click.Path(exists=True, dir_okay=False))
@click.option("--dandiset", "dandiset_id", required=True, help="Dandiset identifier, e.g. 000123.")
@click.option("--base-url", default=None, help="Review page URL (defaults to the configured app_url).")
@click.pass_context
def propose(
    ctx: click.Context, original: str, modified: str, dandiset_id: str, base_url: str | None
) -> None:
    """Print a proposal link for the edits from ORIGINAL to MODIFIED.

    Without a base URL only the encoded proposal payload is printed.
    """
    from dandiset_assistant.cli import _load_json

    console = get_console()
    before = _load_json(original)
    after = _load_json(modified)
    base = base_url or ctx.obj["config"].app_url

    if base:
        output = create_proposal_link(base, dandiset_id, before, after)
    else:
        output = encode_proposal(before, after)
    if output is None:
        console.print("[dim]No changes to propose.[/dim]")
        return
    click.echo(output)
