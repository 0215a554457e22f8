"""Main CLI entry point for Roulette.

This module provides the main Typer application with sub-commands for
problem rules, reviewer selection, and reviewer pool administration.

Usage:
    roulette rules seed
    roulette rules sweep
    roulette assignment select <repository-id> <author-id> --skill python
    roulette reviewer add <repository-id> <reviewer-id> --weight 1.5
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from roulette.cli import assignment as assignment_cli
from roulette.cli import reviewer as reviewer_cli
from roulette.cli import rules as rules_cli
from roulette.config import RouletteConfig, load_config
from roulette.database.connection import get_engine, get_session_factory
from roulette.integrations.notifier import SlackNotifier
from roulette.integrations.stats import CompletionSink, create_completion_sink
from roulette.logging import setup_logging

app = typer.Typer(
    name="roulette",
    help="Roulette: workload-aware code review assignment",
    no_args_is_help=True,
)

# Add sub-apps
app.add_typer(rules_cli.app, name="rules", help="Problem rules and sweeps")
app.add_typer(assignment_cli.app, name="assignment", help="Reviewer selection and lifecycle")
app.add_typer(reviewer_cli.app, name="reviewer", help="Manage repository reviewer pools")

console = Console()


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded Roulette configuration
        engine: Async SQLAlchemy engine
        session_factory: Factory for creating database sessions
    """

    def __init__(self, config: RouletteConfig):
        """Initialize application context.

        Args:
            config: Roulette configuration
        """
        self.config = config
        self.engine = get_engine(config.database)
        self.session_factory = get_session_factory(self.engine)

    def create_notifier(self) -> SlackNotifier:
        """Build the Slack notifier from configuration."""
        return SlackNotifier(self.config.slack)

    def create_completion_sink(self) -> CompletionSink:
        """Build the completion statistics sink from configuration."""
        return create_completion_sink(self.config.stats)


# Global context holder
_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get or create the shared application context.

    Returns:
        AppContext instance with config and database connections

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: RouletteConfig) -> AppContext:
    """Initialize the global application context.

    Args:
        config: Roulette configuration

    Returns:
        Initialized AppContext instance
    """
    global _app_context
    _app_context = AppContext(config)
    return _app_context


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure global options and initialize application context.

    Args:
        config_path: Optional path to TOML configuration file
        verbose: Enable debug-level logging
    """
    # Load configuration
    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    # Configure logging
    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)

    # Initialize application context
    try:
        initialize_context(config)
    except Exception as e:
        console.print(f"[red]Error initializing application:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
