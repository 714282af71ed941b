"""CLI commands for the valuation series."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from numisma.cli.context import get_state, parse_moment, parse_prices
from numisma.cli.output import format_money, print_history
from numisma.engine.series import series_stats
from numisma.errors import NumismaError
from numisma.models.valuation import Bucket

valuation_app = typer.Typer(help="Valuation history commands")
console = Console()


@valuation_app.command("record")
def record_valuation(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(None, help="Portfolio ID or name (default: pinned)"),
    prices_file: Optional[Path] = typer.Option(None, "--prices", "-p", help="Price file (TOML or JSON)"),
    price: Optional[list[str]] = typer.Option(None, "--price", help="TICKER=PRICE, repeatable"),
    at: Optional[str] = typer.Option(None, "--at", help="Valuation time (ISO-8601; default: now)"),
) -> None:
    """Value a portfolio and append it to its history."""
    state = get_state(ctx)
    prices = parse_prices(prices_file, price)
    moment = parse_moment(at)
    tracker = state.tracker()
    try:
        portfolio = tracker.resolve_portfolio(state.user, key)
        record = tracker.record_valuation(state.user, prices, key=portfolio.id, now=moment)
    except (NumismaError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    currency = portfolio.base_currency or state.config.base_currency
    note = " [yellow](back-filled)[/yellow]" if record.is_retroactive else ""
    console.print(
        f"[green]Recorded {format_money(record.value, currency)} for {portfolio.name} "
        f"at {record.timestamp.strftime('%Y-%m-%d %H:%M')}[/green]{note}"
    )


@valuation_app.command("history")
def valuation_history(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(None, help="Portfolio ID or name (default: pinned)"),
    period: Optional[str] = typer.Option(None, "--period", help="week, month or year"),
    bucket: Optional[Bucket] = typer.Option(None, "--bucket", "-b", help="Keep the last value per bucket"),
) -> None:
    """Show a portfolio's valuation history."""
    state = get_state(ctx)
    tracker = state.tracker()
    try:
        portfolio = tracker.resolve_portfolio(state.user, key)
        points = tracker.history(state.user, key=portfolio.id, period=period, bucket=bucket)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    except NumismaError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    print_history(
        points,
        series_stats(points),
        console,
        currency=portfolio.base_currency or state.config.base_currency,
    )
