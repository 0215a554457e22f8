"""Assignment CLI commands.

This module provides CLI commands for dry-run and persisted reviewer
selection, replaying reviewer signals, and status reconciliation.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from roulette.assignment.scorer import WorkItem
from roulette.assignment.selector import (
    ReviewerSelector,
    SelectionError,
    SelectionResult,
    format_selection_summary,
)
from roulette.database.models.assignment import Complexity, SignalAction
from roulette.lifecycle.signals import ReviewSignal
from roulette.lifecycle.state_machine import (
    AssignmentStateMachine,
    InvalidTransitionError,
    ReconciliationReport,
    SignalOutcome,
    SignalOutcomeKind,
)

app = typer.Typer(help="Assignment commands")
console = Console()


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[red]Invalid {label} UUID:[/red] {value}")
        raise typer.Exit(code=1)


def _candidates_table(result: SelectionResult) -> Table:
    table = Table(title="Candidates")
    table.add_column("Reviewer", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("Pending", justify="right")
    table.add_column("Note")

    for candidate in result.candidates:
        name = candidate.profile.display_name
        if result.selected is candidate:
            name = f"[bold green]{name}[/bold green]"
        table.add_row(
            name,
            f"{candidate.total_score * 100:.1f}%" if candidate.eligible else "-",
            f"{candidate.load.total_load:.2f}",
            f"{candidate.pending_reviews}/{candidate.profile.max_concurrent}",
            candidate.disqualify_reason or candidate.warning or "",
        )
    return table


def _print_result(result: SelectionResult) -> None:
    border = "green" if result.success else "yellow"
    console.print(Panel(format_selection_summary(result), title="Selection", border_style=border))
    if result.candidates:
        console.print(_candidates_table(result))


@app.command()
def select(
    repository_id: Annotated[str, typer.Argument(help="Repository UUID")],
    author_id: Annotated[str, typer.Argument(help="Author reviewer UUID")],
    skill: Annotated[
        Optional[list[str]],
        typer.Option("--skill", "-s", help="Required skill (repeatable)"),
    ] = None,
    complexity: Annotated[
        Complexity,
        typer.Option("--complexity", "-x", help="Work item complexity"),
    ] = Complexity.medium,
    seed: Annotated[
        Optional[int],
        typer.Option("--seed", help="Seed the tie-break for a reproducible pick"),
    ] = None,
) -> None:
    """Dry-run a reviewer selection and print the scoring table."""
    import random

    from roulette.main import get_app_context

    ctx = get_app_context()
    work_item = WorkItem(
        repository_id=_parse_uuid(repository_id, "repository"),
        author_id=_parse_uuid(author_id, "author"),
        skills_required=skill or [],
        complexity=complexity,
    )
    selector = ReviewerSelector(
        ctx.session_factory,
        ctx.config.selection,
        rng=random.Random(seed) if seed is not None else None,
    )

    try:
        result = asyncio.run(selector.select(work_item))
    except SelectionError as e:
        console.print(f"[red]Selection failed:[/red] {e}")
        raise typer.Exit(code=1)

    _print_result(result)
    if not result.success:
        raise typer.Exit(code=2)


@app.command()
def assign(
    assignment_id: Annotated[str, typer.Argument(help="Assignment UUID")],
) -> None:
    """Select a reviewer for an existing assignment and persist the choice."""
    from roulette.main import get_app_context

    ctx = get_app_context()
    selector = ReviewerSelector(ctx.session_factory, ctx.config.selection)

    try:
        result = asyncio.run(selector.assign(_parse_uuid(assignment_id, "assignment")))
    except (SelectionError, InvalidTransitionError) as e:
        console.print(f"[red]Assignment failed:[/red] {e}")
        raise typer.Exit(code=1)

    _print_result(result)
    if not result.success:
        raise typer.Exit(code=2)


@app.command()
def signal(
    channel_id: Annotated[str, typer.Argument(help="Channel of the assignment message")],
    message_ts: Annotated[str, typer.Argument(help="Timestamp of the assignment message")],
    actor_id: Annotated[str, typer.Argument(help="Chat identity of the actor")],
    name: Annotated[str, typer.Argument(help="Signal name, e.g. eyes")],
    removed: Annotated[
        bool,
        typer.Option("--removed", help="Signal was removed rather than added"),
    ] = False,
) -> None:
    """Process one reviewer signal as if it arrived from chat."""
    from roulette.main import get_app_context

    ctx = get_app_context()
    review_signal = ReviewSignal(
        channel_id=channel_id,
        message_ts=message_ts,
        actor_id=actor_id,
        signal=name,
        action=SignalAction.removed if removed else SignalAction.added,
    )

    async def _handle() -> SignalOutcome:
        sink = ctx.create_completion_sink()
        try:
            machine = AssignmentStateMachine(ctx.session_factory, sink)
            return await machine.handle_signal(review_signal)
        finally:
            close = getattr(sink, "close", None)
            if close is not None:
                await close()

    try:
        outcome = asyncio.run(_handle())
    except Exception as e:
        console.print(f"[red]Error processing signal:[/red] {e}")
        raise typer.Exit(code=1)

    lines = [f"[bold]Outcome:[/bold] {outcome.kind.value}"]
    if outcome.assignment_id:
        lines.append(f"[bold]Assignment:[/bold] {outcome.assignment_id}")
    if outcome.previous_status:
        lines.append(f"[bold]Status:[/bold] {outcome.previous_status.value}"
                     f" -> {outcome.new_status.value if outcome.new_status else '-'}")
    if outcome.reason:
        lines.append(f"[bold]Reason:[/bold] {outcome.reason}")
    console.print(Panel("\n".join(lines), title="Signal", border_style="cyan"))
    if outcome.kind == SignalOutcomeKind.NOT_FOUND:
        raise typer.Exit(code=2)


@app.command()
def derive(
    assignment_id: Annotated[str, typer.Argument(help="Assignment UUID")],
) -> None:
    """Rebuild an assignment's status from its audit log and report drift."""
    from roulette.main import get_app_context

    ctx = get_app_context()
    machine = AssignmentStateMachine(ctx.session_factory)
    assignment_uuid = _parse_uuid(assignment_id, "assignment")

    async def _reconcile() -> ReconciliationReport | None:
        return await machine.reconcile(assignment_uuid)

    try:
        report = asyncio.run(_reconcile())
    except Exception as e:
        console.print(f"[red]Error reconciling assignment:[/red] {e}")
        raise typer.Exit(code=1)

    if report is None:
        console.print(f"[red]Assignment not found:[/red] {assignment_id}")
        raise typer.Exit(code=2)

    derived = report.derived_status.value if report.derived_status else "(no active signals)"
    verdict = "[green]in sync[/green]" if report.in_sync else "[yellow]drift detected[/yellow]"
    console.print(
        Panel(
            f"[bold]Cached status:[/bold] {report.cached_status.value}\n"
            f"[bold]Derived status:[/bold] {derived}\n"
            f"[bold]Reviewer events:[/bold] {report.event_count}\n"
            f"[bold]Result:[/bold] {verdict}",
            title="Reconciliation",
            border_style="green" if report.in_sync else "yellow",
        )
    )
