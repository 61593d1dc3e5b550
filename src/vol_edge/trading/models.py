"""Position and trade-result models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from vol_edge.signals.models import Direction


class PositionStatus(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class CloseReason(str, Enum):
    """Why a position was closed."""

    SIGNAL = "signal"  # opposing signal
    STOP_LOSS = "stop-loss"
    EOD_FLATTEN = "eod-flatten"


class TradeOutcome(Enum):
    """Result of acting on a signal."""

    OPENED = "opened"
    CLOSED = "closed"
    ALREADY_OPEN = "already_open"
    NO_POSITION = "no_position"
    INSUFFICIENT_CAPITAL = "insufficient_capital"
    INVALID_PRICE = "invalid_price"
    HALTED = "halted"


@dataclass
class Position:
    """Capital committed to one instrument.

    Mutated only by the lifecycle manager; everything handed to callers is
    a copy. Closed positions are retained for audit.
    """

    id: str
    instrument: str
    direction: Direction
    quantity: int
    entry_price: float
    opened_at: datetime
    status: PositionStatus = PositionStatus.OPEN
    signal_id: str = ""
    target_price: float | None = None
    stop_price: float | None = None
    closed_at: datetime | None = None
    exit_price: float | None = None
    realized_pnl: float | None = None
    close_reason: CloseReason | None = None
    close_detail: str = ""

    @property
    def is_open(self) -> bool:
        return self.status is PositionStatus.OPEN

    @property
    def cost_basis(self) -> float:
        return self.entry_price * self.quantity

    def pnl_at(self, price: float) -> float:
        """PnL if the position were closed at ``price``."""
        if self.direction is Direction.BUY:
            return (price - self.entry_price) * self.quantity
        return (self.entry_price - price) * self.quantity

    @property
    def return_pct(self) -> float | None:
        """Realized return in percent of cost basis, None while open."""
        if self.realized_pnl is None or self.cost_basis == 0:
            return None
        return self.realized_pnl / self.cost_basis * 100


@dataclass(frozen=True)
class TradeResult:
    """Outcome of one signal-to-position attempt.

    Attributes:
        instrument: ticker symbol
        outcome: what happened
        position: the opened or closed position (copy), None for no-ops
        reason: human-readable explanation
    """

    instrument: str
    outcome: TradeOutcome
    position: Position | None = None
    reason: str = ""

    @property
    def acted(self) -> bool:
        return self.outcome in (TradeOutcome.OPENED, TradeOutcome.CLOSED)


@dataclass
class DailyRiskState:
    """Realized PnL and circuit-breaker state for one trading day."""

    trading_day: date
    realized_pnl: float = 0.0
    halted: bool = False
    halted_at: datetime | None = None
