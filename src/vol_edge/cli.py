"""Typer CLI: vol-edge scan, indicators, replay, window, stats."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vol_edge.config import get_settings

app = typer.Typer(
    name="vol-edge",
    help="Intraday volatility signal generator with trade lifecycle and risk management",
    no_args_is_help=True,
)
console = Console()

csv_argument = typer.Argument(
    ..., exists=True, dir_okay=False, readable=True,
    help="Price CSV with timestamp,instrument,price,volume columns",
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.command()
def scan(
    csv_path: Path = csv_argument,
    output: str = typer.Option(
        "table", "--output", "-o",
        help="Output format: table, json, csv",
    ),
    min_roi: Optional[float] = typer.Option(
        None, "--min-roi",
        help="Override minimum expected return in percent (e.g. 2.0)",
    ),
) -> None:
    """Classify the latest window of every instrument in a price CSV."""
    from vol_edge.market.loader import load_price_csv
    from vol_edge.signals.classifier import generate_signals
    from vol_edge.signals.formatters import format_csv, format_json, format_table

    settings = get_settings()
    if min_roi is not None:
        settings = settings.model_copy(update={"min_expected_roi": min_roi})

    try:
        series = load_price_csv(csv_path)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]", soft_wrap=True)
        raise typer.Exit(code=1)

    signals = generate_signals(series, settings)

    if output == "json":
        console.print_json(format_json(signals))
    elif output == "csv":
        console.print(format_csv(signals), markup=False, highlight=False, soft_wrap=True)
    else:
        format_table(signals, console)


@app.command()
def indicators(csv_path: Path = csv_argument) -> None:
    """Show the indicator snapshot for every instrument in a price CSV."""
    from vol_edge.indicators.engine import compute_indicators, required_history
    from vol_edge.market.loader import load_price_csv
    from vol_edge.signals.classifier import determine_direction, volatility_score

    settings = get_settings()
    try:
        series = load_price_csv(csv_path)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]", soft_wrap=True)
        raise typer.Exit(code=1)

    needed = required_history(
        settings.bollinger_period, settings.rsi_period, settings.volume_period,
    )

    table = Table(title="Indicator Snapshot", show_lines=False)
    table.add_column("Symbol", style="bold", width=8)
    table.add_column("Samples", justify="right", width=7)
    table.add_column("Price", justify="right", width=10)
    table.add_column("SMA", justify="right", width=10)
    table.add_column("Bands", justify="right", width=21)
    table.add_column("RSI", justify="right", width=6)
    table.add_column("Vol %", justify="right", width=7)
    table.add_column("Chg %", justify="right", width=7)
    table.add_column("Score", justify="right", width=5)
    table.add_column("Dir", width=4)

    for instrument, s in series.items():
        ind = compute_indicators(
            s,
            bollinger_period=settings.bollinger_period,
            bollinger_deviation=settings.bollinger_deviation,
            rsi_period=settings.rsi_period,
            volume_period=settings.volume_period,
        )
        direction = determine_direction(ind)
        samples = f"{len(s)}" if len(s) >= needed else f"[yellow]{len(s)}[/yellow]"
        table.add_row(
            instrument,
            samples,
            f"{ind.price:,.2f}",
            f"{ind.sma:,.2f}",
            f"{ind.lower_band:,.2f} - {ind.upper_band:,.2f}",
            f"{ind.rsi:.1f}",
            f"{ind.volume_ratio:.0f}",
            f"{ind.price_change:+.2f}",
            f"{volatility_score(ind, settings):.2f}",
            direction.value if direction else "-",
        )

    console.print(table)
    console.print(f"[dim]{needed} sample(s) needed for a signal[/dim]")


@app.command()
def replay(
    csv_path: Path = csv_argument,
    journal: bool = typer.Option(
        True, "--journal/--no-journal",
        help="Record signals and positions in the SQLite journal",
    ),
    notify: bool = typer.Option(
        False, "--notify", "-n",
        help="Send Telegram notifications",
    ),
) -> None:
    """Replay a price CSV tick by tick through signals, trades and risk checks."""
    from vol_edge.market.loader import CsvPriceFeed
    from vol_edge.notifications.telegram import TelegramNotifier
    from vol_edge.pipeline import MarketMonitor, latest_prices
    from vol_edge.signals.journal import SignalJournal
    from vol_edge.trading.formatters import format_positions_table, format_risk_report

    try:
        feed = CsvPriceFeed(csv_path)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]", soft_wrap=True)
        raise typer.Exit(code=1)

    settings = get_settings().model_copy(
        update={"watchlist": feed.instruments, "poll_interval_seconds": 0},
    )

    async def _run() -> None:
        notifier = TelegramNotifier() if notify or settings.telegram_enabled else None
        monitor = MarketMonitor(
            feed,
            settings=settings,
            journal=SignalJournal() if journal else None,
            notifier=notifier,
            use_feed_time=True,
            console=console,
        )

        console.print(
            f"[bold]Replaying {feed.length} tick(s) for {len(feed.instruments)} instrument(s)...[/bold]"
        )
        try:
            await monitor.run(max_ticks=feed.length)
        finally:
            if notifier is not None:
                await notifier.close()

        final = await feed.fetch(feed.instruments)
        prices = latest_prices(final)
        stamps = [s.latest_timestamp for s in final.values() if s.latest_timestamp]
        end = max(stamps) if stamps else datetime.now(timezone.utc)

        lifecycle = monitor.risk.lifecycle
        console.print(
            f"\n[bold]Generated [green]{len(monitor.signal_history())}[/green] signal(s)[/bold]"
        )
        format_positions_table(
            lifecycle.get_closed_positions() + lifecycle.get_open_positions(),
            prices, console, title="Replay Positions",
        )
        console.print(format_risk_report(monitor.risk, prices, end), markup=False, highlight=False, soft_wrap=True)

    asyncio.run(_run())


@app.command()
def window() -> None:
    """Show the trading window and whether it is open right now."""
    from vol_edge.trading.window import TradingWindow

    settings = get_settings()
    tw = TradingWindow.from_settings(settings)
    now = datetime.now(timezone.utc)
    local = tw.local(now)

    console.print("[bold]Trading Window[/bold]")
    console.print(
        f"  Session:       {settings.trading_start}-{settings.trading_end} "
        f"{settings.trading_timezone}"
        f"{' (weekends included)' if settings.trade_weekends else ''}"
    )
    console.print(f"  Local time:    {local.strftime('%a %Y-%m-%d %H:%M')}")
    if tw.is_open(now):
        remaining = tw.time_to_close(now)
        minutes = int(remaining.total_seconds() // 60) if remaining else 0
        console.print(f"  Status:        [green]OPEN[/green] ({minutes} min to close)")
    else:
        console.print("  Status:        [yellow]CLOSED[/yellow]")
    if tw.should_flatten(now):
        console.print(
            f"  [red]Within {settings.flatten_margin_minutes} min of close: flattening positions[/red]"
        )


@app.command()
def stats() -> None:
    """Show journaled signal and position performance."""

    async def _run() -> None:
        from vol_edge.signals.journal import SignalJournal

        journal = SignalJournal()
        summary = await journal.get_performance_summary()

        console.print("[bold]Performance Summary[/bold]")
        console.print(f"  Total signals logged: {summary['total_signals']}")
        console.print(f"  Closed positions:     {summary['closed_positions']}")
        if summary["win_rate"] is not None:
            console.print(f"  Win rate:             {summary['win_rate']:.1%}")
        else:
            console.print("  Win rate:             N/A (no closed positions)")
        console.print(f"  Total P&L:            ${summary['total_pnl']:+,.2f}")
        if summary["avg_return_pct"] is not None:
            console.print(f"  Avg return:           {summary['avg_return_pct']:+.2f}%")

        if summary["by_instrument"]:
            table = Table(title="By Instrument")
            table.add_column("Symbol", style="bold")
            table.add_column("Closed", justify="right")
            table.add_column("Wins", justify="right")
            table.add_column("P&L", justify="right")
            for instrument, row in summary["by_instrument"].items():
                table.add_row(
                    instrument, str(row["closed"]), str(row["wins"]),
                    f"${row['total_pnl']:+,.2f}",
                )
            console.print(table)

    asyncio.run(_run())


if __name__ == "__main__":
    app()
