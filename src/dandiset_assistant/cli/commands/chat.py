"""dandiset-assistant chat -- talk to the metadata assistant in the terminal."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import click

from dandiset_assistant.cli.formatting import (
    format_changes,
    format_error,
    format_message,
    format_usage,
    get_console,
)
from dandiset_assistant.exceptions import AssistantError
from dandiset_assistant.orchestrator.models import TurnOutcome
from dandiset_assistant.session import AssistantSession

if TYPE_CHECKING:
    from rich.console import Console

    from dandiset_assistant.config import AssistantConfig
    from dandiset_assistant.orchestrator.models import TurnResult

HELP_TEXT = """\
Commands:
  /changes        show pending metadata changes
  /link           print a proposal link for the pending changes
  /suggest        show suggested prompts
  /model NAME     switch model
  /revert N       keep messages 0..N, drop the rest
  /compress       replace the conversation with a summary
  /clear          start a new conversation
  /usage          show accumulated token usage
  /quit           leave"""


def make_session(config: AssistantConfig) -> AssistantSession:
    return AssistantSession(config)


def _run_turn(session: AssistantSession, text: str, console: Console) -> TurnResult | None:
    """Submit on a worker thread so Ctrl+C can abort the turn."""
    outcome: dict[str, object] = {}

    def target() -> None:
        try:
            outcome["result"] = session.submit(text)
        except AssistantError as e:
            outcome["error"] = e
        except Exception as e:
            outcome["crash"] = e

    worker = threading.Thread(target=target, daemon=True)
    worker.start()
    with console.status("Thinking..."):
        while worker.is_alive():
            try:
                worker.join(0.1)
            except KeyboardInterrupt:
                session.abort()
    if "crash" in outcome:
        raise outcome["crash"]  # type: ignore[misc]
    if "error" in outcome:
        format_error(str(outcome["error"]), console)
        return None
    return outcome.get("result")  # type: ignore[return-value]


def _show_result(result: TurnResult, console: Console) -> None:
    for message in result.messages:
        format_message(message, console)
    if result.outcome is TurnOutcome.FAILED:
        format_error(result.error, console)


def _handle_command(
    session: AssistantSession, line: str, base_url: str | None, console: Console
) -> bool:
    """Run a slash command. Returns False when the user wants to quit."""
    name, _, arg = line[1:].partition(" ")
    arg = arg.strip()
    try:
        if name in ("quit", "exit", "q"):
            return False
        if name == "changes":
            format_changes(session.document.changes(), console)
        elif name == "link":
            link = session.proposal_link(base_url)
            if link:
                click.echo(link)
            else:
                console.print("[dim]No changes to propose.[/dim]")
        elif name == "suggest":
            suggestions = session.current_suggestions() or session.initial_suggestions()
            for suggestion in suggestions:
                console.print(f"  - {suggestion}")
            if not suggestions:
                console.print("[dim]No suggestions.[/dim]")
        elif name == "model":
            session.set_model(arg)
            console.print(f"Model: [cyan]{arg}[/cyan]")
        elif name == "revert":
            session.revert_to_message(int(arg))
            console.print(f"Kept {len(session.conversation)} message(s).")
        elif name == "compress":
            summary = session.compress()
            if summary is not None and summary.content:
                format_message(summary, console)
        elif name == "clear":
            session.clear()
            console.print("[dim]Conversation cleared.[/dim]")
        elif name == "usage":
            format_usage(session.conversation.total_usage, console)
        else:
            console.print(HELP_TEXT)
    except (AssistantError, ValueError) as e:
        format_error(str(e), console)
    return True


@click.command()
@click.argument("metadata", type=click.Path(exists=True, dir_okay=False))
@click.option("--dandiset", "dandiset_id", required=True, help="Dandiset identifier, e.g. 000123.")
@click.option("--version", "version", default="draft", show_default=True, help="Dandiset version.")
@click.option("--model", default=None, help="Model to use (see the model catalog).")
@click.option("--base-url", default=None, help="Review page URL for proposal links.")
@click.option(
    "-m",
    "--message",
    "messages",
    multiple=True,
    help="Send this message and exit instead of starting an interactive session. Repeatable.",
)
@click.pass_context
def chat(
    ctx: click.Context,
    metadata: str,
    dandiset_id: str,
    version: str,
    model: str | None,
    base_url: str | None,
    messages: tuple[str, ...],
) -> None:
    """Chat with the assistant about the dandiset metadata in METADATA."""
    from dandiset_assistant.cli import _load_json

    console = get_console()
    config: AssistantConfig = ctx.obj["config"]
    base = base_url or config.app_url

    with make_session(config) as session:
        session.load_document(_load_json(metadata), dandiset_id=dandiset_id, version=version)
        if model:
            try:
                session.set_model(model)
            except AssistantError as e:
                format_error(str(e), console)
                raise SystemExit(1) from None

        if messages:
            failed = False
            for text in messages:
                result = _run_turn(session, text, console)
                if result is None:
                    raise SystemExit(1)
                _show_result(result, console)
                failed = failed or not result.succeeded
            format_changes(session.document.changes(), console)
            if base and session.document.has_changes:
                click.echo(session.proposal_link(base))
            if failed:
                raise SystemExit(1)
            return

        console.print(f"Editing dandiset [cyan]{dandiset_id}[/cyan] ({version}). /help for commands.")
        while True:
            try:
                line = click.prompt("you", prompt_suffix="> ").strip()
            except (EOFError, click.Abort):
                break
            if not line:
                continue
            if line.startswith("/"):
                if not _handle_command(session, line, base, console):
                    break
                continue
            result = _run_turn(session, line, console)
            if result is not None:
                _show_result(result, console)
