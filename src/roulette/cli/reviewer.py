"""Reviewer pool CLI commands.

This module provides CLI commands for onboarding, tuning, and offboarding
reviewers within a repository.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel

from roulette.database.models.repository import RepositoryReviewer
from roulette.database.queries.reviewer import (
    add_repository_reviewer,
    deactivate_repository_reviewer,
    update_repository_reviewer,
)

app = typer.Typer(help="Reviewer pool commands")
console = Console()


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[red]Invalid {label} UUID:[/red] {value}")
        raise typer.Exit(code=1)


def _print_link(link: RepositoryReviewer, title: str) -> None:
    console.print(
        Panel(
            f"[bold]Link ID:[/bold] {link.id}\n"
            f"[bold]Repository:[/bold] {link.repository_id}\n"
            f"[bold]Reviewer:[/bold] {link.reviewer_id}\n"
            f"[bold]Weight:[/bold] {link.weight}\n"
            f"[bold]Max concurrent:[/bold] {link.max_concurrent}\n"
            f"[bold]Active:[/bold] {link.is_active}",
            title=title,
            border_style="green",
        )
    )


@app.command()
def add(
    repository_id: Annotated[str, typer.Argument(help="Repository UUID")],
    reviewer_id: Annotated[str, typer.Argument(help="Reviewer UUID")],
    weight: Annotated[
        Optional[float],
        typer.Option("--weight", "-w", help="Seniority weight (0.5-2.0)"),
    ] = None,
    max_concurrent: Annotated[
        Optional[int],
        typer.Option("--max-concurrent", "-m", help="Concurrent review capacity (1-20)"),
    ] = None,
) -> None:
    """Onboard a reviewer to a repository."""
    from roulette.main import get_app_context

    ctx = get_app_context()
    repository_uuid = _parse_uuid(repository_id, "repository")
    reviewer_uuid = _parse_uuid(reviewer_id, "reviewer")

    async def _add() -> RepositoryReviewer:
        async with ctx.session_factory() as session:
            async with session.begin():
                return await add_repository_reviewer(
                    session,
                    repository_uuid,
                    reviewer_uuid,
                    weight=weight,
                    max_concurrent=max_concurrent,
                    defaults=ctx.config.selection,
                )

    try:
        link = asyncio.run(_add())
    except ValueError as e:
        console.print(f"[red]Invalid request:[/red] {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[red]Error onboarding reviewer:[/red] {e}")
        raise typer.Exit(code=1)

    _print_link(link, "Reviewer Onboarded")


@app.command()
def update(
    link_id: Annotated[str, typer.Argument(help="Repository reviewer link UUID")],
    weight: Annotated[
        Optional[float],
        typer.Option("--weight", "-w", help="Seniority weight (0.5-2.0)"),
    ] = None,
    max_concurrent: Annotated[
        Optional[int],
        typer.Option("--max-concurrent", "-m", help="Concurrent review capacity (1-20)"),
    ] = None,
    active: Annotated[
        Optional[bool],
        typer.Option("--active/--inactive", help="Enable or disable the link"),
    ] = None,
) -> None:
    """Tune a reviewer's weight, capacity, or active flag in one repository."""
    from roulette.main import get_app_context

    ctx = get_app_context()
    link_uuid = _parse_uuid(link_id, "link")

    async def _update() -> RepositoryReviewer:
        async with ctx.session_factory() as session:
            async with session.begin():
                return await update_repository_reviewer(
                    session,
                    link_uuid,
                    weight=weight,
                    max_concurrent=max_concurrent,
                    is_active=active,
                )

    try:
        link = asyncio.run(_update())
    except ValueError as e:
        console.print(f"[red]Invalid request:[/red] {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[red]Error updating reviewer:[/red] {e}")
        raise typer.Exit(code=1)

    _print_link(link, "Reviewer Updated")


@app.command()
def remove(
    repository_id: Annotated[str, typer.Argument(help="Repository UUID")],
    reviewer_id: Annotated[str, typer.Argument(help="Reviewer UUID")],
) -> None:
    """Offboard a reviewer from a repository (the link is kept, inactive)."""
    from roulette.main import get_app_context

    ctx = get_app_context()
    repository_uuid = _parse_uuid(repository_id, "repository")
    reviewer_uuid = _parse_uuid(reviewer_id, "reviewer")

    async def _remove() -> bool:
        async with ctx.session_factory() as session:
            async with session.begin():
                return await deactivate_repository_reviewer(
                    session, repository_uuid, reviewer_uuid
                )

    try:
        removed = asyncio.run(_remove())
    except Exception as e:
        console.print(f"[red]Error offboarding reviewer:[/red] {e}")
        raise typer.Exit(code=1)

    if not removed:
        console.print("[yellow]No active link found for that reviewer[/yellow]")
        raise typer.Exit(code=1)
    console.print("[green]Reviewer offboarded[/green]")
