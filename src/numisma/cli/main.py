"""Numisma CLI - Entry point for the nms command."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from numisma import __version__
from numisma.cli.context import CLIState, get_state
from numisma.cli.portfolio import portfolio_app
from numisma.cli.position import position_app
from numisma.cli.valuation import valuation_app
from numisma.core.config import load_app_config

app = typer.Typer(
    name="nms",
    help="Numisma - Position and portfolio valuation tracker",
    add_completion=False,
)
app.add_typer(portfolio_app, name="portfolio")
app.add_typer(position_app, name="position")
app.add_typer(valuation_app, name="valuation")
console = Console()

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Handlers installed by setup_logging, replaced on each call
_handlers: list[logging.Handler] = []


def setup_logging(log_level: str = "WARNING", log_file: Optional[Path] = None) -> None:
    """
    Set up logging for the CLI.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file to log to
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    for handler in _handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    _handlers.append(console_handler)

    # File handler (if specified)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        _handlers.append(file_handler)

    for handler in _handlers:
        root_logger.addHandler(handler)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold green]numisma[/bold green] version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(  # noqa: ARG001
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User ID (default from config)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
) -> None:
    """Numisma - Position and portfolio valuation tracker."""
    config = load_app_config()
    if db is not None:
        config = config.model_copy(update={"db_path": db})
    level = (log_level or config.log_level).upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        raise typer.BadParameter(f"Unknown log level: {log_level}")
    setup_logging(level, config.log_file)

    ctx.obj = CLIState(config=config, user=user or config.user_id)
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def status(ctx: typer.Context) -> None:
    """Show system status."""
    state = get_state(ctx)
    console.print("[bold]Numisma Status[/bold]")
    console.print(f"Version: {__version__}")
    console.print(f"Database: {state.config.database_path}")
    console.print(f"User: {state.user}")

    portfolios = state.tracker().list_portfolios(state.user)
    if not portfolios:
        console.print("[yellow]No portfolios yet.[/yellow]")
        return
    pinned = next((p for p in portfolios if p.is_pinned), None)
    console.print(f"Portfolios: {len(portfolios)}")
    console.print(f"Pinned: {pinned.name if pinned else '[yellow]none[/yellow]'}")


if __name__ == "__main__":
    app()
