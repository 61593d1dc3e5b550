"""Position and risk formatters: Rich tables, risk report, Telegram."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console
from rich.table import Table

from vol_edge.trading.models import Position, TradeResult
from vol_edge.trading.risk import RiskManager


def format_positions_table(
    positions: list[Position],
    live_prices: dict[str, float] | None = None,
    console: Console | None = None,
    title: str = "Positions",
) -> None:
    """Print positions; open ones are marked to ``live_prices`` when given."""
    if console is None:
        console = Console()

    if not positions:
        console.print("[dim]No positions.[/dim]")
        return

    live_prices = live_prices or {}
    table = Table(title=title, show_lines=False)
    table.add_column("Symbol", style="bold", width=8)
    table.add_column("Dir", width=4)
    table.add_column("Qty", justify="right", width=6)
    table.add_column("Entry", justify="right", width=10)
    table.add_column("Last/Exit", justify="right", width=10)
    table.add_column("PnL", justify="right", width=10)
    table.add_column("Status", width=12)

    for p in positions:
        if p.is_open:
            price = live_prices.get(p.instrument)
            pnl = p.pnl_at(price) if price is not None else None
            status = "OPEN"
        else:
            price = p.exit_price
            pnl = p.realized_pnl
            status = p.close_reason.value if p.close_reason else "CLOSED"

        pnl_text = "-"
        if pnl is not None:
            color = "green" if pnl >= 0 else "red"
            pnl_text = f"[{color}]{pnl:+,.2f}[/{color}]"

        table.add_row(
            p.instrument,
            p.direction.value,
            str(p.quantity),
            f"${p.entry_price:,.2f}",
            f"${price:,.2f}" if price is not None else "-",
            pnl_text,
            status,
        )

    console.print(table)


def format_risk_report(
    risk: RiskManager,
    live_prices: dict[str, float],
    now: datetime | None = None,
) -> str:
    """Plain-text risk snapshot: daily PnL, limits, open positions, window."""
    now = now or datetime.now(timezone.utc)
    state = risk.daily_state(now)
    positions = risk.lifecycle.get_open_positions()

    lines = [
        "Risk Management Report",
        "======================",
        "",
        f"Trading day: {state.trading_day.isoformat()}",
        f"Realized P&L: ${state.realized_pnl:,.2f}",
        f"Max daily loss: ${risk.max_daily_loss:,.2f}",
        f"Max loss per trade: ${risk.max_loss_per_trade:,.2f}",
        "",
        "Open positions:",
    ]

    if not positions:
        lines.append("  none")
    for p in positions:
        price = live_prices.get(p.instrument)
        if price is None:
            lines.append(f"  {p.instrument}: {p.direction.value} x{p.quantity} @ ${p.entry_price:,.2f} (no price)")
            continue
        pnl = p.pnl_at(price)
        pct = pnl / p.cost_basis * 100 if p.cost_basis else 0.0
        lines.append(
            f"  {p.instrument}: {p.direction.value} x{p.quantity} @ ${p.entry_price:,.2f}"
            f" -> ${price:,.2f}  P&L ${pnl:+,.2f} ({pct:+.2f}%)"
        )

    lines.append("")
    lines.append("Status:")
    lines.append("  HALTED: daily loss limit reached" if state.halted else "  Daily loss limit not reached")
    lines.append(
        "  Within trading window" if risk.is_within_trading_window(now)
        else "  Outside trading window"
    )
    if risk.should_flatten(now):
        lines.append("  Closing window: flatten all positions")

    return "\n".join(lines)


def format_trade_result(result: TradeResult) -> str:
    """One-line description of a trade attempt for logs and console."""
    return f"{result.instrument}: {result.outcome.value} - {result.reason}"


def format_telegram_closed(position: Position) -> str:
    """Format a closed-position alert for Telegram (Markdown)."""
    pnl = position.realized_pnl or 0.0
    icon = "✅" if pnl >= 0 else "\U0001f53b"
    reason = position.close_reason.value if position.close_reason else "closed"
    lines = [
        f"{icon} *CLOSED {position.instrument}* ({reason})",
        "",
        f"{position.direction.value} x{position.quantity}",
        f"Entry ${position.entry_price:,.2f} -> Exit ${(position.exit_price or 0.0):,.2f}",
        f"P&L: ${pnl:+,.2f}",
    ]
    if position.close_detail:
        lines.append(position.close_detail)
    return "\n".join(lines)
