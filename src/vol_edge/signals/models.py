"""Signal data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from vol_edge.indicators.engine import IndicatorSet


class Direction(Enum):
    """Trade direction of a signal or position."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> Direction:
        return Direction.SELL if self is Direction.BUY else Direction.BUY


@dataclass(frozen=True)
class Signal:
    """A classified trading signal with price levels.

    Absence of a signal is expressed by the classifier returning None;
    there is no HOLD value.

    Attributes:
        id: SIG-<instrument>-<direction>-<creation instant>
        instrument: ticker symbol
        direction: BUY or SELL
        entry_price: price at classification time
        target_price: profit target, bounded by the favourable band
        stop_loss: protective stop, bounded by the adverse band
        expected_return_pct: entry-to-target return in percent
        confidence: composite volatility score (0-1)
        indicators: indicator snapshot the decision was made from
        created_at: when the signal was generated
        timeframe: descriptive holding horizon
    """

    id: str
    instrument: str
    direction: Direction
    entry_price: float
    target_price: float
    stop_loss: float
    expected_return_pct: float
    confidence: float
    indicators: IndicatorSet
    created_at: datetime
    timeframe: str = "1-3 hours"
