"""Technical indicators computed from a price/volume window.

Every function is pure. A window shorter than an indicator's period yields
that indicator's neutral value instead of an error: 0.0 for the moving
average and bands, 50.0 for RSI, 0.0 for volume ratio and price change.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass

import numpy as np

from vol_edge.market.models import PriceSeries

NEUTRAL_RSI = 50.0


@dataclass(frozen=True)
class IndicatorSet:
    """Indicator values for one instrument at one tick.

    Attributes:
        price: latest sampled price
        sma: simple moving average over the band period
        upper_band: sma + deviation * population std
        lower_band: sma - deviation * population std
        rsi: relative strength index (0-100)
        volume_ratio: latest volume as % of its recent average
        price_change: % change between the two most recent prices
    """

    price: float
    sma: float
    upper_band: float
    lower_band: float
    rsi: float
    volume_ratio: float
    price_change: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def sma(values: Sequence[float], period: int) -> float:
    """Arithmetic mean of the last ``period`` values."""
    if period <= 0 or len(values) < period:
        return 0.0
    return float(np.mean(np.asarray(values[-period:], dtype=np.float64)))


def population_std(values: Sequence[float], period: int) -> float:
    """Population standard deviation (ddof=0) of the last ``period`` values."""
    if period <= 0 or len(values) < period:
        return 0.0
    return float(np.std(np.asarray(values[-period:], dtype=np.float64)))


def bollinger_bands(
    prices: Sequence[float], period: int, deviation: float,
) -> tuple[float, float, float]:
    """Return (sma, upper, lower). All 0.0 if the window is too short."""
    if len(prices) < period:
        return 0.0, 0.0, 0.0
    mean = sma(prices, period)
    width = deviation * population_std(prices, period)
    return mean, mean + width, mean - width


def rsi(prices: Sequence[float], period: int) -> float:
    """Simple-sum RSI over the last ``period`` price deltas."""
    if period <= 0 or len(prices) < period + 1:
        return NEUTRAL_RSI

    deltas = np.diff(np.asarray(prices[-(period + 1):], dtype=np.float64))
    gains = float(deltas[deltas > 0].sum())
    losses = float(-deltas[deltas < 0].sum())

    if losses == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + gains / losses)


def volume_ratio(volumes: Sequence[float], period: int) -> float:
    """Latest volume as a percentage of the mean of the last ``period``."""
    avg = sma(volumes, period)
    if avg <= 0:
        return 0.0
    return float(volumes[-1]) / avg * 100.0


def price_change(prices: Sequence[float]) -> float:
    """Percent change between the two most recent prices."""
    if len(prices) < 2 or prices[-2] == 0:
        return 0.0
    return (prices[-1] - prices[-2]) / prices[-2] * 100.0


def required_history(
    bollinger_period: int = 20,
    rsi_period: int = 14,
    volume_period: int = 10,
) -> int:
    """Samples needed before every indicator leaves its neutral default."""
    return max(bollinger_period, rsi_period + 1, volume_period)


def compute_indicators(
    series: PriceSeries,
    *,
    bollinger_period: int = 20,
    bollinger_deviation: float = 2.0,
    rsi_period: int = 14,
    volume_period: int = 10,
) -> IndicatorSet:
    """Compute the full indicator set for the series' latest sample."""
    mean, upper, lower = bollinger_bands(series.prices, bollinger_period, bollinger_deviation)
    return IndicatorSet(
        price=series.latest_price,
        sma=mean,
        upper_band=upper,
        lower_band=lower,
        rsi=rsi(series.prices, rsi_period),
        volume_ratio=volume_ratio(series.volumes, volume_period),
        price_change=price_change(series.prices),
    )
