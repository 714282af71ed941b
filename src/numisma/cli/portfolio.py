"""CLI commands for portfolios."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from numisma.cli.context import get_state, parse_prices
from numisma.cli.output import print_portfolio_list, print_summary
from numisma.errors import NumismaError
from numisma.models.portfolio import RiskProfile

portfolio_app = typer.Typer(help="Portfolio commands")
console = Console()


@portfolio_app.command("create")
def create_portfolio(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Portfolio name"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    currency: Optional[str] = typer.Option(None, "--currency", help="Base currency (e.g. USD)"),
    initial: Optional[float] = typer.Option(None, "--initial", help="Initial investment"),
    risk_profile: Optional[RiskProfile] = typer.Option(None, "--risk-profile", help="Risk profile"),
    pin: bool = typer.Option(False, "--pin", help="Make this the pinned portfolio"),
) -> None:
    """Create a new portfolio."""
    state = get_state(ctx)
    fields: dict = {"description": description, "risk_profile": risk_profile}
    if currency:
        fields["base_currency"] = currency.upper()
    if initial is not None:
        fields["initial_investment"] = Decimal(str(initial))
    try:
        portfolio = state.tracker().create_portfolio(state.user, name, pin=pin, **fields)
    except (NumismaError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    pinned = " [yellow](pinned)[/yellow]" if portfolio.is_pinned else ""
    console.print(f"[green]Created portfolio {portfolio.name} ({portfolio.id}){pinned}[/green]")


@portfolio_app.command("list")
def list_portfolios(ctx: typer.Context) -> None:
    """List your portfolios, pinned first."""
    state = get_state(ctx)
    print_portfolio_list(state.tracker().list_portfolios(state.user), console)


@portfolio_app.command("pin")
def pin_portfolio(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Portfolio ID or name"),
) -> None:
    """Pin a portfolio as your primary view."""
    state = get_state(ctx)
    try:
        portfolio = state.tracker().pin(state.user, key)
    except NumismaError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    console.print(f"[green]Pinned {portfolio.name} ({portfolio.id})[/green]")


@portfolio_app.command("summary")
def portfolio_summary(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(None, help="Portfolio ID or name (default: pinned)"),
    prices_file: Optional[Path] = typer.Option(None, "--prices", "-p", help="Price file (TOML or JSON)"),
    price: Optional[list[str]] = typer.Option(None, "--price", help="TICKER=PRICE, repeatable"),
    refresh: bool = typer.Option(True, "--refresh/--no-refresh", help="Store the summary on the portfolio"),
) -> None:
    """Value a portfolio and show its summary."""
    state = get_state(ctx)
    prices = parse_prices(prices_file, price)
    tracker = state.tracker()
    try:
        portfolio = tracker.resolve_portfolio(state.user, key)
        summary = tracker.summarize(state.user, prices, key=portfolio.id, refresh=refresh)
    except NumismaError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    print_summary(summary, console, currency=portfolio.base_currency or state.config.base_currency)


@portfolio_app.command("delete")
def delete_portfolio(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Portfolio ID or name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a portfolio with all its positions and valuations."""
    state = get_state(ctx)
    tracker = state.tracker()
    try:
        portfolio = tracker.resolve_portfolio(state.user, key)
    except NumismaError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    if not yes and not typer.confirm(f"Delete '{portfolio.name}' and everything in it?"):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(0)

    tracker.delete_portfolio(state.user, portfolio.id)
    console.print(f"[green]Deleted {portfolio.name}[/green]")
