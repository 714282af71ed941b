"""Rich output formatting for CLI commands."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from numisma.models.temporal import format_temporal

if TYPE_CHECKING:
    from numisma.engine.aggregator import PortfolioSummary
    from numisma.engine.valuator import PositionValuation
    from numisma.models.portfolio import Portfolio
    from numisma.models.position import Position
    from numisma.models.valuation import HistoricalValuation, ValuationStats


def format_money(value: Optional[Decimal | float], currency: str = "USD") -> str:
    """Format a value as currency."""
    if value is None:
        return "N/A"
    val = float(value) if isinstance(value, Decimal) else value
    symbol = "$" if currency in ("USD", "USDT", "USDC") else ""
    suffix = "" if symbol else f" {currency}"
    sign = "-" if val < 0 else ""
    return f"{sign}{symbol}{abs(val):,.2f}{suffix}"


def format_percent(value: Optional[float], show_sign: bool = True) -> str:
    """Format a percentage that is already scaled to 0-100."""
    if value is None:
        return "N/A"
    if show_sign and value >= 0:
        return f"+{value:.2f}%"
    return f"{value:.2f}%"


def _format_size(value: Decimal | float) -> str:
    """Format a base-unit size."""
    val = float(value) if isinstance(value, Decimal) else value
    return f"{val:.6f}".rstrip("0").rstrip(".") or "0"


def _color(value: Decimal | float) -> str:
    return "green" if float(value) >= 0 else "red"


def print_portfolio_list(portfolios: Sequence[Portfolio], console: Console) -> None:
    """Print a table of portfolios, pinned marked with a star."""
    if not portfolios:
        console.print("[yellow]No portfolios yet. Create one with 'nms portfolio create'.[/yellow]")
        return

    table = Table(title="Portfolios")
    table.add_column("", width=2)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Day", justify="right")
    table.add_column("Top Holdings")
    table.add_column("Updated", style="dim")

    for p in portfolios:
        currency = p.base_currency or "USD"
        day = p.day_change_percent
        day_text = (
            f"[{_color(day)}]{format_percent(day)}[/{_color(day)}]" if day is not None else "N/A"
        )
        table.add_row(
            "★" if p.is_pinned else "",
            p.id,
            p.name,
            format_money(p.total_value, currency),
            day_text,
            ", ".join(p.top_holdings) or "-",
            p.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def print_summary(summary: PortfolioSummary, console: Console, currency: str = "USD") -> None:
    """Print a portfolio summary panel."""
    console.print()
    console.print(Panel(f"[bold cyan]{summary.name}[/bold cyan]", expand=False))

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value", justify="right")

    table.add_row("Total Value:", format_money(summary.total_value, currency))
    table.add_row("Invested:", format_money(summary.invested, currency))
    pnl_color = _color(summary.unrealized_pnl)
    table.add_row(
        "Unrealized P&L:",
        f"[{pnl_color}]{format_money(summary.unrealized_pnl, currency)}[/{pnl_color}]",
    )
    table.add_row("Realized P&L:", format_money(summary.realized_pnl, currency))
    ret_color = _color(summary.return_percent)
    table.add_row("Return:", f"[{ret_color}]{format_percent(summary.return_percent)}[/{ret_color}]")

    day = summary.day_change
    if day.reference is None:
        table.add_row("Day Change:", "[dim]not enough history[/dim]")
    else:
        marker = " [yellow](approx.)[/yellow]" if day.approximate else ""
        day_color = _color(day.change)
        table.add_row(
            "Day Change:",
            f"[{day_color}]{format_money(day.change, currency)} "
            f"({format_percent(day.change_percent)})[/{day_color}]{marker}",
        )
    table.add_row("Positions:", f"{summary.open_count} open / {summary.position_count} total")
    table.add_row("Top Holdings:", ", ".join(summary.top_holdings) or "-")
    console.print(table)

    if summary.allocation:
        console.print()
        alloc = Table(title="Allocation")
        alloc.add_column("Asset", style="cyan")
        alloc.add_column("Value", justify="right")
        alloc.add_column("Share", justify="right")
        for a in summary.allocation:
            alloc.add_row(a.asset, format_money(a.value, currency), format_percent(a.percentage, False))
        console.print(alloc)

    if summary.partial:
        console.print("[yellow]Some positions could not be valued; totals are partial.[/yellow]")


def print_position_table(
    positions: Sequence[Position],
    valuations: Sequence[PositionValuation],
    console: Console,
    currency: str = "USD",
) -> None:
    """Print positions with their valuations, in the given order."""
    if not positions:
        console.print("[yellow]No positions.[/yellow]")
        return

    table = Table(title="Positions")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Ticker")
    table.add_column("Side")
    table.add_column("Status")
    table.add_column("Risk", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Return", justify="right")
    table.add_column("Opened", style="dim")

    for p, v in zip(positions, valuations):
        value = format_money(v.value, currency) if v.price_known else "[dim]no price[/dim]"
        if v.partial:
            value += " [yellow]*[/yellow]"
        color = _color(v.pnl)
        table.add_row(
            p.id,
            p.name,
            p.asset.ticker,
            p.side.value,
            p.position_details.status.value,
            str(p.risk_level),
            _format_size(v.size),
            value,
            f"[{color}]{format_money(v.pnl, currency)}[/{color}]",
            f"[{color}]{format_percent(v.pnl_percent)}[/{color}]",
            format_temporal(p.position_details.date_opened, "short"),
        )
    console.print(table)


def print_history(
    points: Sequence[HistoricalValuation],
    stats: ValuationStats,
    console: Console,
    currency: str = "USD",
) -> None:
    """Print a valuation series with its summary statistics."""
    if not points:
        console.print("[yellow]No valuations recorded.[/yellow]")
        return

    table = Table(title="Valuation History")
    table.add_column("Timestamp")
    table.add_column("Value", justify="right")
    table.add_column("Status", style="dim")

    for v in points:
        status = v.date_status.value + (" (back-filled)" if v.is_retroactive else "")
        table.add_row(v.timestamp.strftime("%Y-%m-%d %H:%M"), format_money(v.value, currency), status)
    console.print(table)

    color = _color(stats.change)
    console.print(
        f"{stats.count} points | high {format_money(stats.highest, currency)} | "
        f"low {format_money(stats.lowest, currency)} | "
        f"change [{color}]{format_money(stats.change, currency)} "
        f"({format_percent(stats.change_percent)})[/{color}]"
    )
