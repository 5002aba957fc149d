"""Rich formatting helpers for the assistant CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from dandiset_assistant.document.diff import format_value

if TYPE_CHECKING:
    from dandiset_assistant.conversation.models import ChatMessage, Usage
    from dandiset_assistant.document.diff import MetadataChange
    from dandiset_assistant.proposal.codec import ProposalValidation

_CHANGE_STYLES = {"added": "green", "removed": "red", "modified": "yellow"}
_CHANGE_MARKS = {"added": "+", "removed": "-", "modified": "~"}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_changes(changes: list[MetadataChange], console: Console) -> None:
    """Display metadata changes as a table."""
    if not changes:
        console.print("[dim]No changes.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("", width=1)
    table.add_column("Path", style="cyan")
    table.add_column("Old", style="dim")
    table.add_column("New")

    for change in changes:
        style = _CHANGE_STYLES[change.type]
        table.add_row(
            f"[{style}]{_CHANGE_MARKS[change.type]}[/{style}]",
            escape(change.path),
            escape(format_value(change.old_value)) if change.type != "added" else "",
            escape(format_value(change.new_value)) if change.type != "removed" else "",
        )

    console.print(table)
    counts = {kind: sum(1 for c in changes if c.type == kind) for kind in _CHANGE_STYLES}
    console.print(
        f"[green]+{counts['added']}[/green] added  "
        f"[red]-{counts['removed']}[/red] removed  "
        f"[yellow]~{counts['modified']}[/yellow] modified"
    )


def format_validation(validation: ProposalValidation, console: Console) -> None:
    if validation.ok:
        console.print("[green]Proposal applies cleanly.[/green]")
    else:
        console.print(f"[red]Proposal rejected:[/red] {escape(validation.reason)}")


def format_message(message: ChatMessage, console: Console) -> None:
    """Display one chat message."""
    if message.role == "user":
        console.print(f"[bold cyan]you>[/bold cyan] {escape(message.content)}")
    elif message.role == "assistant":
        for call in message.tool_calls or []:
            console.print(
                f"[dim]-> {escape(call.function.name)}("
                f"{escape(call.function.arguments)})[/dim]"
            )
        if message.content:
            console.print(Markdown(message.content))
    else:
        preview = message.content
        if len(preview) > 200:
            preview = preview[:200] + "..."
        console.print(f"[dim]<- {escape(message.name or message.tool_call_id)}: "
                      f"{escape(preview)}[/dim]")


def format_usage(usage: Usage, console: Console) -> None:
    console.print(
        f"[dim]Tokens: {usage.prompt_tokens} prompt + {usage.completion_tokens} "
        f"completion, est. ${usage.estimated_cost:.4f}[/dim]"
    )


def format_json(data: object, console: Console) -> None:
    console.print_json(json.dumps(data, ensure_ascii=False))


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {message}", highlight=False)
