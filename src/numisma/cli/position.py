"""CLI commands for positions."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from numisma.cli.context import get_state, parse_moment, parse_prices
from numisma.cli.output import print_position_table
from numisma.engine.valuator import SORT_FIELDS, filter_positions, sort_positions, value_position
from numisma.errors import NumismaError
from numisma.models.temporal import GENESIS, GENESIS_LITERAL, Absolute

position_app = typer.Typer(help="Position commands")
console = Console()


@position_app.command("import")
def import_positions(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="JSON file with a list of positions"),
    portfolio: Optional[str] = typer.Option(
        None, "--portfolio", "-P", help="Move imported positions into this portfolio"
    ),
) -> None:
    """Import positions from an exported JSON file."""
    state = get_state(ctx)
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        imported = state.tracker().import_positions(state.user, path, portfolio_key=portfolio)
    except (NumismaError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    console.print(f"[green]Imported {len(imported)} positions[/green]")


@position_app.command("list")
def list_positions(
    ctx: typer.Context,
    portfolio: Optional[str] = typer.Option(
        None, "--portfolio", "-P", help="Portfolio ID or name (default: pinned)"
    ),
    prices_file: Optional[Path] = typer.Option(None, "--prices", "-p", help="Price file (TOML or JSON)"),
    price: Optional[list[str]] = typer.Option(None, "--price", help="TICKER=PRICE, repeatable"),
    sort: Optional[str] = typer.Option(
        None, "--sort", "-s", help=f"Sort field: {', '.join(SORT_FIELDS)}"
    ),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    search: Optional[str] = typer.Option(None, "--filter", "-f", help="Match name, ticker or strategy"),
) -> None:
    """List positions with their current value and P&L."""
    state = get_state(ctx)
    prices = parse_prices(prices_file, price)
    tracker = state.tracker()
    try:
        target = tracker.resolve_portfolio(state.user, portfolio)
        positions = tracker.positions(target)
        if search:
            positions = filter_positions(positions, search)
        if sort:
            positions = sort_positions(positions, sort, prices, descending=desc)
        valuations = [value_position(p, prices) for p in positions]
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    except NumismaError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    print_position_table(
        positions, valuations, console, currency=target.base_currency or state.config.base_currency
    )


@position_app.command("close")
def close_position(
    ctx: typer.Context,
    position_id: str = typer.Argument(..., help="Position ID"),
    date: Optional[str] = typer.Option(
        None, "--date", help="Close date (ISO-8601 or 'genesis'; default: now)"
    ),
) -> None:
    """Close a position. Closing cannot be undone."""
    state = get_state(ctx)
    if date is not None and date.strip().lower() == GENESIS_LITERAL:
        when = GENESIS
    else:
        moment = parse_moment(date)
        when = Absolute(timestamp=moment) if moment is not None else None
    try:
        closed = state.tracker().close_position(state.user, position_id, when)
    except KeyError as e:
        console.print(f"[red]Error: Position not found: {position_id}[/red]")
        raise typer.Exit(1) from e
    except NumismaError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    console.print(f"[green]Closed {closed.name} ({closed.id})[/green]")
