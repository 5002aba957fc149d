"""dandiset-assistant review -- check a received proposal against metadata."""

from __future__ import annotations

import json

import click

from dandiset_assistant.cli.formatting import (
    format_changes,
    format_error,
    format_validation,
    get_console,
)
from dandiset_assistant.document.diff import delta_to_changes
from dandiset_assistant.proposal.codec import decode_proposal, validate_proposal
from dandiset_assistant.proposal.link import parse_proposal_from_url


@click.command()
@click.argument("metadata", type=click.Path(exists=True, dir_okay=False))
@click.argument("proposal")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the metadata with the proposal applied to this file.",
)
def review(metadata: str, proposal: str, output: str | None) -> None:
    """Validate PROPOSAL (a review link or encoded payload) against METADATA.

    Exits with status 1 when the proposal is invalid or stale.
    """
    from dandiset_assistant.cli import _load_json

    console = get_console()
    current = _load_json(metadata)

    if "proposal=" in proposal:
        link = parse_proposal_from_url(proposal)
        decoded = link.proposal if link is not None else None
        if link is not None and link.dandiset_id:
            console.print(f"Proposal for dandiset [cyan]{link.dandiset_id}[/cyan]")
    else:
        decoded = decode_proposal(proposal)
    if decoded is None:
        format_error("Invalid or corrupted proposal", console)
        raise SystemExit(1)

    validation = validate_proposal(decoded, current)
    format_validation(validation, console)
    if not validation.ok:
        raise SystemExit(1)

    format_changes(delta_to_changes(decoded.delta), console)
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            json.dump(validation.modified_document, fh, indent=2, ensure_ascii=False)
            fh.write("\n")
        console.print(f"Wrote [cyan]{output}[/cyan]")
