"""Position lifecycle: open on signals, close on opposing signals, stops and flatten.

Per instrument the manager is in one of two states, flat or open. All
mutation happens under one lock; readers get copies.
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from vol_edge.config import Settings, get_settings
from vol_edge.signals.models import Direction, Signal
from vol_edge.trading.models import (
    CloseReason,
    Position,
    PositionStatus,
    TradeOutcome,
    TradeResult,
)

logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


class LifecycleManager:
    """Opens, tracks and closes positions, one per instrument."""

    def __init__(
        self,
        capital_per_instrument: float | None = None,
        max_loss_per_trade: float | None = None,
        allow_short: bool | None = None,
    ) -> None:
        settings: Settings | None = None
        if capital_per_instrument is None or max_loss_per_trade is None or allow_short is None:
            settings = get_settings()
        self.capital_per_instrument = (
            capital_per_instrument if capital_per_instrument is not None
            else settings.capital_per_instrument
        )
        self.max_loss_per_trade = (
            max_loss_per_trade if max_loss_per_trade is not None
            else settings.max_loss_per_trade
        )
        self.allow_short = allow_short if allow_short is not None else settings.allow_short

        self._lock = threading.Lock()
        self._open: dict[str, Position] = {}
        self._closed: list[Position] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> LifecycleManager:
        return cls(
            capital_per_instrument=settings.capital_per_instrument,
            max_loss_per_trade=settings.max_loss_per_trade,
            allow_short=settings.allow_short,
        )

    # -- signal handling --

    def act_on_signal(
        self, signal: Signal, live_price: float, now: datetime | None = None,
    ) -> TradeResult:
        """Apply a signal to the instrument's position.

        Never raises for business conditions; no-ops and failures come
        back as a TradeResult with a reason.
        """
        instrument = signal.instrument
        if live_price <= 0 or math.isnan(live_price):
            return TradeResult(instrument, TradeOutcome.INVALID_PRICE, reason=f"invalid live price {live_price}")

        with self._lock:
            current = self._open.get(instrument)

            if current is not None:
                if signal.direction is current.direction:
                    return TradeResult(
                        instrument, TradeOutcome.ALREADY_OPEN, replace(current),
                        reason=f"position already open for {instrument}",
                    )
                closed = self._close(
                    current, live_price, CloseReason.SIGNAL, _now(now),
                    detail=f"opposing {signal.direction.value} signal {signal.id}",
                )
                return TradeResult(
                    instrument, TradeOutcome.CLOSED, closed,
                    reason=f"closed {current.direction.value} on {signal.direction.value} signal",
                )

            if signal.direction is Direction.SELL and not self.allow_short:
                return TradeResult(
                    instrument, TradeOutcome.NO_POSITION,
                    reason=f"no open position for {instrument} to sell",
                )

            quantity = math.floor(self.capital_per_instrument / live_price)
            if quantity <= 0:
                return TradeResult(
                    instrument, TradeOutcome.INSUFFICIENT_CAPITAL,
                    reason=(
                        f"insufficient capital to buy {instrument} at ${live_price:.2f} "
                        f"(capital ${self.capital_per_instrument:.2f})"
                    ),
                )

            position = Position(
                id=f"{instrument}-{uuid.uuid4().hex[:12]}",
                instrument=instrument,
                direction=signal.direction,
                quantity=quantity,
                entry_price=live_price,
                opened_at=_now(now),
                signal_id=signal.id,
                target_price=signal.target_price,
                stop_price=signal.stop_loss,
            )
            self._open[instrument] = position
            logger.info(
                "Opened %s %s x%d @ %.2f", position.direction.value, instrument, quantity, live_price,
            )
            return TradeResult(
                instrument, TradeOutcome.OPENED, replace(position),
                reason=f"opened {position.direction.value} x{quantity}",
            )

    # -- periodic scans --

    def scan_stop_loss(
        self,
        live_prices: dict[str, float],
        max_loss: float | None = None,
        now: datetime | None = None,
    ) -> list[Position]:
        """Close positions whose unrealized loss strictly exceeds ``max_loss``.

        Positions without a live price are left alone.
        """
        limit = self.max_loss_per_trade if max_loss is None else max_loss
        closed: list[Position] = []

        with self._lock:
            for instrument, position in list(self._open.items()):
                price = live_prices.get(instrument)
                if price is None:
                    continue
                loss = -position.pnl_at(price)
                if loss > limit:
                    closed.append(self._close(
                        position, price, CloseReason.STOP_LOSS, _now(now),
                        detail=f"Loss of ${loss:.2f} exceeds max loss of ${limit:.2f}",
                    ))

        return closed

    def flatten_all(
        self, live_prices: dict[str, float], now: datetime | None = None,
    ) -> list[Position]:
        """Close every open position that has a live price."""
        closed: list[Position] = []

        with self._lock:
            for instrument, position in list(self._open.items()):
                price = live_prices.get(instrument)
                if price is None:
                    logger.warning("Cannot flatten %s: no live price", instrument)
                    continue
                closed.append(self._close(
                    position, price, CloseReason.EOD_FLATTEN, _now(now),
                    detail="End of trading window - closing all positions",
                ))

        return closed

    # -- reads --

    def get_open_positions(self) -> list[Position]:
        with self._lock:
            return [replace(p) for p in self._open.values()]

    def get_closed_positions(self) -> list[Position]:
        with self._lock:
            return [replace(p) for p in self._closed]

    def get_position(self, instrument: str) -> Position | None:
        with self._lock:
            position = self._open.get(instrument)
            return replace(position) if position is not None else None

    def unrealized_pnl(self, live_prices: dict[str, float]) -> float:
        """Sum of open-position PnL at ``live_prices`` (missing prices count 0)."""
        with self._lock:
            return sum(
                p.pnl_at(live_prices[i])
                for i, p in self._open.items()
                if i in live_prices
            )

    # -- internals (lock held) --

    def _close(
        self,
        position: Position,
        price: float,
        reason: CloseReason,
        when: datetime,
        detail: str = "",
    ) -> Position:
        position.status = PositionStatus.CLOSED
        position.exit_price = price
        position.closed_at = when
        position.realized_pnl = round(position.pnl_at(price), 4)
        position.close_reason = reason
        position.close_detail = detail

        del self._open[position.instrument]
        self._closed.append(position)

        logger.info(
            "Closed %s %s x%d @ %.2f (%s) pnl=%.2f",
            position.direction.value, position.instrument, position.quantity,
            price, reason.value, position.realized_pnl,
        )
        return replace(position)
