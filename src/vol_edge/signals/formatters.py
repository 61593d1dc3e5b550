"""Signal output formatters: Rich table, JSON, CSV, Telegram."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone

from rich.console import Console
from rich.table import Table

from vol_edge.signals.models import Direction, Signal

# Telegram rejects messages over 4096 characters
TELEGRAM_MAX_CHARS = 4096


def _sorted(signals: list[Signal]) -> list[Signal]:
    return sorted(signals, key=lambda s: (s.confidence, s.expected_return_pct), reverse=True)


def signal_to_dict(signal: Signal) -> dict:
    return {
        "id": signal.id,
        "instrument": signal.instrument,
        "direction": signal.direction.value,
        "entry_price": signal.entry_price,
        "target_price": signal.target_price,
        "stop_loss": signal.stop_loss,
        "expected_return_pct": signal.expected_return_pct,
        "confidence": signal.confidence,
        "timeframe": signal.timeframe,
        "indicators": signal.indicators.as_dict(),
        "created_at": signal.created_at.isoformat(),
    }


def format_table(signals: list[Signal], console: Console | None = None) -> None:
    """Print signals as a Rich table, highest confidence first."""
    if console is None:
        console = Console()

    if not signals:
        console.print("[yellow]No signals generated (no instruments passed the volatility gates).[/yellow]")
        return

    table = Table(
        title="Volatility Signals",
        caption=f"Generated at {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
        show_lines=True,
    )

    table.add_column("Symbol", style="bold", width=8)
    table.add_column("Dir", width=4)
    table.add_column("Entry", justify="right", width=10)
    table.add_column("Target", justify="right", width=10)
    table.add_column("Stop", justify="right", width=10)
    table.add_column("Exp. ROI", justify="right", width=8)
    table.add_column("Conf", justify="right", width=5)
    table.add_column("RSI", justify="right", width=5)
    table.add_column("Vol %", justify="right", width=6)

    for s in _sorted(signals):
        color = "green" if s.direction is Direction.BUY else "red"
        table.add_row(
            s.instrument,
            f"[{color}]{s.direction.value}[/{color}]",
            f"${s.entry_price:,.2f}",
            f"${s.target_price:,.2f}",
            f"${s.stop_loss:,.2f}",
            f"{s.expected_return_pct:.2f}%",
            f"{s.confidence:.0%}",
            f"{s.indicators.rsi:.0f}",
            f"{s.indicators.volume_ratio:.0f}",
        )

    console.print(table)
    console.print(f"\n[dim]{len(signals)} signal(s) total[/dim]")


def format_json(signals: list[Signal]) -> str:
    """Format signals as a JSON string."""
    return json.dumps([signal_to_dict(s) for s in _sorted(signals)], indent=2)


def format_csv(signals: list[Signal]) -> str:
    """Format signals as CSV."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        "id", "instrument", "direction", "entry_price", "target_price",
        "stop_loss", "expected_return_pct", "confidence", "timeframe", "created_at",
    ])
    for s in _sorted(signals):
        writer.writerow([
            s.id, s.instrument, s.direction.value, s.entry_price, s.target_price,
            s.stop_loss, s.expected_return_pct, s.confidence, s.timeframe,
            s.created_at.isoformat(),
        ])
    return output.getvalue()


def format_telegram_signal(signal: Signal) -> str:
    """Format a single signal alert for Telegram (Markdown)."""
    arrow = "\U0001f4c8" if signal.direction is Direction.BUY else "\U0001f4c9"
    lines = [
        f"\U0001f6a8 *{signal.direction.value} SIGNAL: {signal.instrument}*",
        "",
        f"\U0001f4b0 Entry: ${signal.entry_price:,.2f}",
        f"\U0001f3af Target: ${signal.target_price:,.2f}",
        f"\U0001f6d1 Stop: ${signal.stop_loss:,.2f}",
        f"{arrow} Expected return: {signal.expected_return_pct:.2f}%",
        f"\U0001f50d Confidence: {signal.confidence:.0%}",
        f"⏱ Time frame: {signal.timeframe}",
        "",
        f"RSI {signal.indicators.rsi:.1f} | Volume {signal.indicators.volume_ratio:.0f}% of avg"
        f" | Change {signal.indicators.price_change:+.2f}%",
        f"⏰ {signal.created_at.strftime('%Y-%m-%d %H:%M:%S %Z')}".rstrip(),
    ]
    return "\n".join(lines)


def format_telegram_summary(
    signals: list[Signal], max_chars: int = TELEGRAM_MAX_CHARS,
) -> str:
    """Format a tick summary for Telegram (Markdown), truncated to ``max_chars``."""
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    count = len(signals)

    lines = [
        "\U0001f4ca *Volatility Scan Complete*",
        "",
        f"\U0001f550 {now}",
        f"\U0001f4c8 {count} signal(s) generated",
    ]

    if signals:
        lines.append("")
        lines.append("| Dir | Symbol | Entry | ROI |")
        ordered = _sorted(signals)
        for idx, s in enumerate(ordered):
            row = f"| {s.direction.value} | {s.instrument} | ${s.entry_price:,.2f} | {s.expected_return_pct:.2f}% |"
            remaining = len(ordered) - idx
            footer = f"... and {remaining} more"
            if len("\n".join(lines + [row, footer])) > max_chars:
                lines.append(footer)
                break
            lines.append(row)

    return "\n".join(lines)
