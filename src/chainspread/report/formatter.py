"""Rich console output for quotes and spread comparisons."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models import PriceQuote
from ..spread import SpreadComparison


def _format_price(price: float) -> str:
    return f"{price:,.4f}"


def _format_age(quote: PriceQuote, now_ms: int) -> str:
    age_s = quote.age_ms(now_ms) / 1000
    return f"{age_s:.1f}s"


def _status(quote: PriceQuote) -> str:
    if not quote.success:
        return "[red]unavailable[/]"
    if quote.stale:
        return "[yellow]stale[/]"
    return "[green]fresh[/]"


def format_quote(
    quote: PriceQuote,
    now_ms: int,
    display_name: str | None = None,
    console: Console | None = None,
) -> None:
    """Print a single quote as a panel."""
    console = console or Console()

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="cyan")
    if quote.success:
        table.add_row("Price", f"{_format_price(quote.price)} {quote.pair}")
        table.add_row("Source", quote.source)
        table.add_row("Age", _format_age(quote, now_ms))
    table.add_row("Status", _status(quote))
    for error in quote.errors:
        table.add_row("Error", f"[dim]{error}[/]")

    title = f"[bold]{display_name or quote.chain}[/]"
    if not quote.success:
        border = "red"
    else:
        border = "yellow" if quote.stale else "green"
    console.print(Panel(table, title=title, border_style=border))


def format_quotes_table(
    quotes: Mapping[str, PriceQuote],
    requested: Sequence[str],
    now_ms: int,
    display_name: Callable[[str], str] = lambda chain: chain,
    console: Console | None = None,
) -> None:
    """Print one row per requested chain; chains without a quote show as unavailable."""
    console = console or Console()

    table = Table(title="Prices", header_style="bold")
    table.add_column("Chain")
    table.add_column("Price", justify="right", style="cyan")
    table.add_column("Source")
    table.add_column("Age", justify="right")
    table.add_column("Status")

    for chain in requested:
        quote = quotes.get(chain)
        if quote is None:
            table.add_row(display_name(chain), "-", "-", "-", "[red]unavailable[/]")
            continue
        table.add_row(
            display_name(chain),
            _format_price(quote.price),
            quote.source,
            _format_age(quote, now_ms),
            _status(quote),
        )

    console.print(table)


def format_comparison_table(
    comparisons: Sequence[SpreadComparison],
    threshold_percent: float,
    display_name: Callable[[str], str] = lambda chain: chain,
    console: Console | None = None,
) -> None:
    """Print the pairwise spread matrix, highlighting rows above the threshold."""
    console = console or Console()

    if not comparisons:
        console.print("[yellow]Not enough prices to compare[/]")
        return

    table = Table(
        title=f"Spreads (threshold {threshold_percent:.2f}%)", header_style="bold"
    )
    table.add_column("Chain A")
    table.add_column("Price A", justify="right")
    table.add_column("Chain B")
    table.add_column("Price B", justify="right")
    table.add_column("Spread", justify="right")

    for row in sorted(comparisons, key=lambda c: c.spread_percent, reverse=True):
        style = "bold red" if row.is_abnormal else None
        table.add_row(
            display_name(row.chain_a),
            _format_price(row.price_a),
            display_name(row.chain_b),
            _format_price(row.price_b),
            f"{row.spread_percent:.4f}%",
            style=style,
        )

    console.print(table)
