"""Risk manager: per-trade stops, daily loss circuit breaker, trading window.

Lock order is always risk lock, then lifecycle lock. Halt checks and
signal-driven opens happen under the risk lock, so a scan that trips the
breaker can never interleave with an open: the halt always wins.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from vol_edge.config import Settings, get_settings
from vol_edge.signals.models import Signal
from vol_edge.trading.lifecycle import LifecycleManager
from vol_edge.trading.models import DailyRiskState, Position, TradeOutcome, TradeResult
from vol_edge.trading.window import TradingWindow

logger = logging.getLogger(__name__)


@dataclass
class RiskScan:
    """Result of one risk re-evaluation.

    Attributes:
        closed: positions closed by the per-trade stop
        realized_pnl: realized PnL for the trading day after the scan
        unrealized_pnl: open-position PnL at the scan's prices
        halted: circuit breaker state after the scan
        tripped: True if this scan tripped the breaker
    """

    closed: list[Position] = field(default_factory=list)
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    halted: bool = False
    tripped: bool = False

    @property
    def total_pnl(self) -> float:
        return self.realized_pnl + self.unrealized_pnl


class RiskManager:
    """Gatekeeper in front of a LifecycleManager."""

    def __init__(
        self,
        lifecycle: LifecycleManager | None = None,
        settings: Settings | None = None,
        *,
        window: TradingWindow | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.lifecycle = lifecycle or LifecycleManager.from_settings(settings)
        self.window = window or TradingWindow.from_settings(settings)
        self.max_daily_loss = settings.max_daily_loss
        self.max_loss_per_trade = settings.max_loss_per_trade

        self._lock = threading.Lock()
        # Pinned to a date on the first check
        self._state: DailyRiskState | None = None

    # -- daily state --

    def _rollover(self, now: datetime) -> None:
        today = self.window.trading_day(now)
        if self._state is None:
            self._state = DailyRiskState(trading_day=today)
        elif today > self._state.trading_day:
            logger.info(
                "New trading day %s: resetting realized PnL (was %.2f)",
                today.isoformat(), self._state.realized_pnl,
            )
            self._state = DailyRiskState(trading_day=today)

    def _book(self, positions: list[Position]) -> None:
        for position in positions:
            if position.realized_pnl is not None:
                self._state.realized_pnl += position.realized_pnl

    def _check_breaker(self, total: float, now: datetime) -> bool:
        """Trip the breaker if ``total`` is at or below the daily limit.

        Returns True only on the call that trips it.
        """
        if self._state.halted or total > -self.max_daily_loss:
            return False
        self._state.halted = True
        self._state.halted_at = now
        logger.warning(
            "Daily loss limit reached (PnL %.2f <= -%.2f), halting new trades",
            total, self.max_daily_loss,
        )
        return True

    def daily_state(self, now: datetime | None = None) -> DailyRiskState:
        with self._lock:
            self._rollover(now or datetime.now(timezone.utc))
            return replace(self._state)

    def is_halted(self, now: datetime | None = None) -> bool:
        return self.daily_state(now).halted

    # -- gated operations --

    def act_on_signal(
        self, signal: Signal, live_price: float, now: datetime | None = None,
    ) -> TradeResult:
        """Act on a signal unless the daily circuit breaker is tripped."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            self._rollover(now)
            if self._state.halted:
                return TradeResult(
                    signal.instrument, TradeOutcome.HALTED,
                    reason=(
                        f"trading halted for {self._state.trading_day.isoformat()}: "
                        f"daily loss limit ${self.max_daily_loss:.2f} reached"
                    ),
                )
            result = self.lifecycle.act_on_signal(signal, live_price, now)
            if result.outcome is TradeOutcome.CLOSED and result.position is not None:
                self._book([result.position])
                self._check_breaker(self._state.realized_pnl, now)
            return result

    def scan(self, live_prices: dict[str, float], now: datetime | None = None) -> RiskScan:
        """Enforce the per-trade stop, then re-evaluate the daily breaker.

        The breaker trips when realized plus unrealized PnL is at or below
        ``-max_daily_loss``. It blocks new signals but closes nothing.
        """
        now = now or datetime.now(timezone.utc)
        with self._lock:
            self._rollover(now)

            closed = self.lifecycle.scan_stop_loss(live_prices, self.max_loss_per_trade, now)
            self._book(closed)

            unrealized = self.lifecycle.unrealized_pnl(live_prices)
            total = self._state.realized_pnl + unrealized

            tripped = self._check_breaker(total, now)

            return RiskScan(
                closed=closed,
                realized_pnl=self._state.realized_pnl,
                unrealized_pnl=unrealized,
                halted=self._state.halted,
                tripped=tripped,
            )

    def flatten_all(self, live_prices: dict[str, float], now: datetime | None = None) -> list[Position]:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            self._rollover(now)
            closed = self.lifecycle.flatten_all(live_prices, now)
            self._book(closed)
            self._check_breaker(self._state.realized_pnl, now)
            return closed

    # -- window policy --

    def is_within_trading_window(self, now: datetime | None = None) -> bool:
        return self.window.is_open(now or datetime.now(timezone.utc))

    def should_flatten(self, now: datetime | None = None) -> bool:
        return self.window.should_flatten(now or datetime.now(timezone.utc))
