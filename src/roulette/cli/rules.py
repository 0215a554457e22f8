"""Problem rule CLI commands.

This module provides CLI commands for seeding default data and running the
problem detection sweep once or continuously.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from roulette.database.queries.rule import seed_problem_rules
from roulette.database.queries.signal import seed_signal_mappings
from roulette.rules.engine import DetectionStats, ProblemDetector
from roulette.rules.scheduler import ProblemSweepScheduler

app = typer.Typer(help="Problem rule commands")
console = Console()


def _stats_table(stats: DetectionStats) -> Table:
    table = Table(title="Problem Detection")
    table.add_column("Counter", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Checked", str(stats.checked))
    table.add_row("Triggered", str(stats.triggered))
    table.add_row("Resolved", str(stats.resolved))
    table.add_row("Notified", str(stats.notified))
    table.add_row("Errors", str(stats.errors))
    table.add_row("Duration", f"{stats.duration_seconds:.2f}s")
    return table


@app.command()
def seed() -> None:
    """Insert or refresh the default problem rules and signal mappings."""
    from roulette.main import get_app_context

    ctx = get_app_context()

    async def _seed() -> tuple[int, int]:
        async with ctx.session_factory() as session:
            async with session.begin():
                rules = await seed_problem_rules(session)
                mappings = await seed_signal_mappings(session)
        return rules, mappings

    try:
        rules, mappings = asyncio.run(_seed())
    except Exception as e:
        console.print(f"[red]Error seeding defaults:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]Seeded {rules} problem rules and {mappings} signal mappings[/green]")


@app.command()
def sweep() -> None:
    """Run one problem detection sweep and print its counters."""
    from roulette.main import get_app_context

    ctx = get_app_context()

    async def _sweep() -> DetectionStats:
        notifier = ctx.create_notifier()
        try:
            detector = ProblemDetector(ctx.session_factory, notifier)
            return await detector.run()
        finally:
            await notifier.close()

    try:
        stats = asyncio.run(_sweep())
    except Exception as e:
        console.print(f"[red]Error running sweep:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(_stats_table(stats))


@app.command()
def watch() -> None:
    """Run problem detection sweeps on the configured interval until Ctrl+C."""
    from roulette.main import get_app_context

    ctx = get_app_context()
    interval = ctx.config.rules.sweep_interval_seconds

    async def _watch() -> None:
        notifier = ctx.create_notifier()
        scheduler = ProblemSweepScheduler(
            ProblemDetector(ctx.session_factory, notifier),
            ctx.config.rules,
        )
        await scheduler.start()
        try:
            while scheduler.is_running:
                await asyncio.sleep(1)
        finally:
            if scheduler.is_running:
                await scheduler.stop()
            await notifier.close()

    console.print(f"[bold cyan]Watching for problems every {interval}s[/bold cyan]")
    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/yellow]")
