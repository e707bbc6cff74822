"""CLI entrypoint for chainspread."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Annotated

import typer

from .clock import SYSTEM_CLOCK
from .constants import DEFAULT_COOLDOWN_SECONDS, DEFAULT_THRESHOLD_PERCENT
from .errors import UnsupportedChainError
from .logger import setup_logging
from .models import MonitoringTask
from .monitor import Monitor
from .report.formatter import (
    format_comparison_table,
    format_quote,
    format_quotes_table,
)
from .settings import MonitorSettings
from .spread import compare_quotes
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Cross-chain price spread monitor.",
)


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("chainspread")


def build_monitor(state: AppState) -> Monitor:
    return Monitor(state.settings)


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise typer.BadParameter("CLI state is not initialized")
    return state


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [chainspread] table).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration and logging shared by every command."""
    if config_path:
        os.environ["CHAINSPREAD_CONFIG"] = str(config_path)

    init_kwargs: dict[str, str] = {}
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = MonitorSettings(**init_kwargs)

    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings, logger=_build_logger())

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command()
def price(
    ctx: typer.Context,
    chain: Annotated[str, typer.Argument(help="Chain identifier, e.g. ethereum.")],
):
    """Fetch the current price on one chain."""
    state = _state(ctx)

    async def _run():
        async with build_monitor(state) as monitor:
            quote = await monitor.get_price(chain)
            return quote, monitor.registry.display_name(quote.chain)

    try:
        quote, display_name = asyncio.run(_run())
    except UnsupportedChainError as e:
        raise typer.BadParameter(str(e), param_hint="CHAIN") from e

    format_quote(quote, SYSTEM_CLOCK.now_ms(), display_name)
    if not quote.success:
        raise typer.Exit(code=1)


@app.command()
def prices(
    ctx: typer.Context,
    chains: Annotated[
        list[str] | None,
        typer.Argument(help="Chains to fetch. Defaults to every configured chain."),
    ] = None,
):
    """Fetch prices on several chains in parallel batches."""
    state = _state(ctx)

    async def _run():
        async with build_monitor(state) as monitor:
            requested = (
                [c.lower() for c in chains]
                if chains
                else list(monitor.registry.all_chains())
            )
            quotes = await monitor.batch_get_prices(requested)
            return monitor, requested, quotes

    try:
        monitor, requested, quotes = asyncio.run(_run())
    except UnsupportedChainError as e:
        raise typer.BadParameter(str(e), param_hint="CHAINS") from e

    format_quotes_table(
        quotes, requested, SYSTEM_CLOCK.now_ms(), monitor.registry.display_name
    )
    if not quotes:
        raise typer.Exit(code=1)


@app.command()
def compare(
    ctx: typer.Context,
    threshold: Annotated[
        float,
        typer.Option("--threshold", "-t", help="Spread (percent) to flag as abnormal."),
    ] = DEFAULT_THRESHOLD_PERCENT,
):
    """Compare prices across every pair of configured chains."""
    state = _state(ctx)

    async def _run():
        async with build_monitor(state) as monitor:
            quotes = await monitor.batch_get_prices()
            return monitor, quotes

    monitor, quotes = asyncio.run(_run())
    comparisons = compare_quotes(quotes, threshold)
    format_comparison_table(comparisons, threshold, monitor.registry.display_name)


def _tasks_from_args(
    state: AppState, chains: list[str] | None, threshold: float, cooldown: float
) -> list[MonitoringTask]:
    if chains:
        if len(chains) != 2:
            raise typer.BadParameter(
                "exactly two chains are required", param_hint="CHAINS"
            )
        chain_a, chain_b = (c.lower() for c in chains)
        return [
            MonitoringTask(
                id=f"{chain_a}-{chain_b}",
                chain_pair=(chain_a, chain_b),
                threshold_percent=threshold,
                cooldown_seconds=cooldown,
            )
        ]
    return [task.to_task() for task in state.settings.tasks if task.active]


@app.command()
def monitor(
    ctx: typer.Context,
    chains: Annotated[
        list[str] | None,
        typer.Argument(help="Two chains to compare. Defaults to the configured tasks."),
    ] = None,
    threshold: Annotated[
        float,
        typer.Option("--threshold", "-t", help="Alert when the spread exceeds this percent."),
    ] = DEFAULT_THRESHOLD_PERCENT,
    cooldown: Annotated[
        float,
        typer.Option("--cooldown", help="Seconds between repeated alerts."),
    ] = DEFAULT_COOLDOWN_SECONDS,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", help="Seconds between ticks."),
    ] = None,
    duration: Annotated[
        float | None,
        typer.Option("--duration", help="Stop after this many seconds."),
    ] = None,
):
    """Run monitoring tasks until interrupted."""
    state = _state(ctx)
    tasks = _tasks_from_args(state, chains, threshold, cooldown)
    if not tasks:
        raise typer.BadParameter(
            "no chains given and no active tasks configured", param_hint="CHAINS"
        )

    async def _run() -> None:
        async with build_monitor(state) as mon:
            for task in tasks:
                mon.start_task(task, interval)
            if duration is not None:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()

    try:
        asyncio.run(_run())
    except UnsupportedChainError as e:
        raise typer.BadParameter(str(e), param_hint="CHAINS") from e
    except KeyboardInterrupt:
        state.logger.info("Interrupted, monitoring stopped")


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
