"""Tick orchestrator and polling monitor.

Wires together: price feed → signal batch → risk-gated trades → stop-loss
scan → end-of-day flatten → journal and notifications.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import aiosqlite
from rich.console import Console

from vol_edge.config import Settings, get_settings
from vol_edge.market.models import PriceSeries
from vol_edge.notifications.telegram import TelegramNotifier
from vol_edge.signals.classifier import generate_signals
from vol_edge.signals.journal import SignalJournal
from vol_edge.signals.models import Signal
from vol_edge.trading.formatters import format_trade_result
from vol_edge.trading.models import Position, TradeOutcome, TradeResult
from vol_edge.trading.risk import RiskManager, RiskScan

logger = logging.getLogger(__name__)


class PriceFeed(Protocol):
    """Source of per-instrument price windows."""

    async def fetch(self, instruments: list[str]) -> dict[str, PriceSeries]: ...


@dataclass
class TickReport:
    """Everything one tick did.

    Attributes:
        at: tick time
        signals: signals generated this tick
        results: trade attempts, one per applied signal
        stopped: positions closed by the per-trade stop
        flattened: positions closed by the end-of-day flatten
        scan: risk re-evaluation, None for skipped ticks
        skipped: True when the tick fell outside the trading window
    """

    at: datetime
    signals: list[Signal] = field(default_factory=list)
    results: list[TradeResult] = field(default_factory=list)
    stopped: list[Position] = field(default_factory=list)
    flattened: list[Position] = field(default_factory=list)
    scan: RiskScan | None = None
    skipped: bool = False

    @property
    def closed(self) -> list[Position]:
        """Positions closed this tick, whatever the reason."""
        by_signal = [
            r.position for r in self.results
            if r.outcome is TradeOutcome.CLOSED and r.position is not None
        ]
        return by_signal + self.stopped + self.flattened

    @property
    def opened(self) -> list[Position]:
        return [
            r.position for r in self.results
            if r.outcome is TradeOutcome.OPENED and r.position is not None
        ]


def latest_prices(series_by_instrument: dict[str, PriceSeries]) -> dict[str, float]:
    return {
        instrument: series.latest_price
        for instrument, series in series_by_instrument.items()
        if len(series) > 0
    }


def run_tick(
    series_by_instrument: dict[str, PriceSeries],
    risk: RiskManager,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> TickReport:
    """Run one evaluation over a snapshot of price windows.

    1. Generate signals for every instrument
    2. Apply each through the risk manager (not while flattening)
    3. Enforce per-trade stops and re-evaluate the daily breaker
    4. Flatten everything inside the closing margin
    """
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)
    prices = latest_prices(series_by_instrument)
    flattening = risk.should_flatten(now)

    report = TickReport(at=now)
    report.signals = generate_signals(series_by_instrument, settings, now)

    if flattening and report.signals:
        logger.info("Closing window: ignoring %d signal(s)", len(report.signals))
    else:
        for signal in report.signals:
            result = risk.act_on_signal(signal, prices[signal.instrument], now)
            logger.debug("%s", format_trade_result(result))
            report.results.append(result)

    report.scan = risk.scan(prices, now)
    report.stopped = report.scan.closed

    if flattening:
        report.flattened = risk.flatten_all(prices, now)

    return report


class MarketMonitor:
    """Polls a price feed on a fixed interval and runs a tick each time.

    ``stop()`` is cooperative: the current tick completes and no further
    tick is scheduled.
    """

    def __init__(
        self,
        feed: PriceFeed,
        risk: RiskManager | None = None,
        settings: Settings | None = None,
        journal: SignalJournal | None = None,
        notifier: TelegramNotifier | None = None,
        use_feed_time: bool = False,
        console: Console | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.feed = feed
        self.risk = risk or RiskManager(settings=self.settings)
        self.journal = journal
        self.notifier = notifier
        self.use_feed_time = use_feed_time
        self.console = console
        self.ticks = 0

        self._history: deque[Signal] = deque(maxlen=self.settings.signal_history_size)
        self._stop = asyncio.Event()

    def signal_history(self) -> list[Signal]:
        """Recent signals, oldest first."""
        return list(self._history)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    def _tick_time(self, series_by_instrument: dict[str, PriceSeries], now: datetime | None) -> datetime:
        if now is not None:
            return now
        if self.use_feed_time:
            stamps = [
                s.latest_timestamp for s in series_by_instrument.values()
                if s.latest_timestamp is not None
            ]
            if stamps:
                return max(stamps)
        return datetime.now(timezone.utc)

    async def tick(self, now: datetime | None = None) -> TickReport:
        """Fetch, evaluate and hand the results to the journal and notifier."""
        series = await self.feed.fetch(self.settings.watchlist)
        now = self._tick_time(series, now)

        if not self.risk.is_within_trading_window(now):
            logger.debug("Outside trading window at %s, skipping tick", now.isoformat())
            return TickReport(at=now, skipped=True)

        report = run_tick(series, self.risk, self.settings, now)
        self._history.extend(report.signals)

        if report.scan is not None and report.scan.tripped:
            logger.warning("Daily loss limit hit at %s; no new trades today", now.isoformat())

        await self._record(report)
        if self.notifier is not None:
            await self.notifier.notify(report.signals, report.closed)

        if self.console is not None:
            self._print(report)
        return report

    async def _record(self, report: TickReport) -> None:
        if self.journal is None:
            return
        try:
            await self.journal.log_signals(report.signals)
            await self.journal.log_positions(report.opened + report.closed)
        except (aiosqlite.Error, OSError):
            logger.error("Failed to journal tick at %s", report.at.isoformat(), exc_info=True)

    def _print(self, report: TickReport) -> None:
        stamp = report.at.strftime("%Y-%m-%d %H:%M")
        for signal in report.signals:
            self.console.print(
                f"  {stamp} [bold]{signal.direction.value}[/bold] {signal.instrument} "
                f"@ ${signal.entry_price:,.2f} (ROI {signal.expected_return_pct:.2f}%, "
                f"conf {signal.confidence:.0%})"
            )
        for position in report.closed:
            color = "green" if (position.realized_pnl or 0.0) >= 0 else "red"
            self.console.print(
                f"  {stamp} closed {position.instrument} ({position.close_reason.value}) "
                f"[{color}]{position.realized_pnl:+,.2f}[/{color}]"
            )

    async def run(self, max_ticks: int | None = None) -> int:
        """Poll until stopped or ``max_ticks`` ticks have run.

        A failing tick is logged and the loop carries on. Returns the
        number of ticks run.
        """
        interval = self.settings.poll_interval_seconds
        started = self.ticks
        logger.info(
            "Monitoring %d instrument(s) every %ds", len(self.settings.watchlist), interval,
        )

        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Tick failed")
            finally:
                self.ticks += 1

            if max_ticks is not None and self.ticks - started >= max_ticks:
                break
            if interval <= 0:
                await asyncio.sleep(0)
                continue
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Monitor stopped after %d tick(s)", self.ticks - started)
        return self.ticks - started
