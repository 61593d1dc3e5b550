"""Volatility scoring, direction classification and price-level derivation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from vol_edge.config import Settings, get_settings
from vol_edge.indicators.engine import IndicatorSet, compute_indicators, required_history
from vol_edge.market.models import PriceSeries
from vol_edge.signals.models import Direction, Signal

logger = logging.getLogger(__name__)

# Price within 2% of a band counts as touching it
_BAND_PROXIMITY = 0.02

_BAND_WEIGHT = 0.30
_RSI_WEIGHT = 0.25
_VOLUME_WEIGHT = 0.25
_CHANGE_WEIGHT = 0.20


def near_upper_band(ind: IndicatorSet) -> bool:
    return ind.price >= ind.upper_band * (1.0 - _BAND_PROXIMITY)


def near_lower_band(ind: IndicatorSet) -> bool:
    return ind.price <= ind.lower_band * (1.0 + _BAND_PROXIMITY)


def volatility_score(ind: IndicatorSet, settings: Settings) -> float:
    """Additive composite volatility score in [0, 1].

    +0.30 price at or beyond a band (within 2%)
    +0.25 RSI beyond overbought/oversold
    +0.25 volume ratio above the surge threshold
    +0.20 |price change| above the minimum volatility percent
    """
    score = 0.0

    if near_upper_band(ind) or near_lower_band(ind):
        score += _BAND_WEIGHT

    if ind.rsi > settings.rsi_overbought or ind.rsi < settings.rsi_oversold:
        score += _RSI_WEIGHT

    if ind.volume_ratio > settings.volume_threshold:
        score += _VOLUME_WEIGHT

    if abs(ind.price_change) > settings.min_volatility_percent:
        score += _CHANGE_WEIGHT

    return round(score, 4)


def determine_direction(ind: IndicatorSet) -> Direction | None:
    """Classify the indicator set as BUY, SELL or nothing.

    BUY:  oversold at the lower band, or rising with RSI in (50, 70).
    SELL: overbought at the upper band, or falling with RSI in (30, 50).
    Conflicting or flat conditions return None.
    """
    if (near_lower_band(ind) and ind.rsi < 30) or (ind.price_change > 0 and 50 < ind.rsi < 70):
        return Direction.BUY

    if (near_upper_band(ind) and ind.rsi > 70) or (ind.price_change < 0 and 30 < ind.rsi < 50):
        return Direction.SELL

    return None


def price_levels(
    entry: float,
    direction: Direction,
    ind: IndicatorSet,
    settings: Settings,
) -> tuple[float, float]:
    """Derive (target, stop) for an entry price.

    The target is capped by the band on the profitable side and the stop
    is floored by the band on the adverse side.
    """
    roi = settings.min_expected_roi / 100.0
    stop_pct = settings.stop_loss_percent / 100.0

    if direction is Direction.BUY:
        target = min(ind.upper_band, entry * (1 + roi))
        stop = max(ind.lower_band, entry * (1 - stop_pct))
    else:
        target = max(ind.lower_band, entry * (1 - roi))
        stop = min(ind.upper_band, entry * (1 + stop_pct))

    return round(target, 4), round(stop, 4)


def expected_return(entry: float, target: float, direction: Direction) -> float:
    """Entry-to-target return in percent (positive when profitable)."""
    if entry <= 0:
        return 0.0
    if direction is Direction.BUY:
        pct = (target - entry) / entry * 100
    else:
        pct = (entry - target) / entry * 100
    return round(pct, 4)


def _levels_ordered(entry: float, target: float, stop: float, direction: Direction) -> bool:
    if direction is Direction.BUY:
        return stop < entry < target
    return target < entry < stop


def make_signal_id(instrument: str, direction: Direction, created_at: datetime) -> str:
    stamp = created_at.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    return f"SIG-{instrument}-{direction.value}-{stamp}"


def generate_signal(
    series: PriceSeries,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> Signal | None:
    """Classify one instrument's price window.

    Returns None when history is too short, the volatility score is below
    the confidence threshold, the direction is undecided, the expected
    return misses ``min_expected_roi``, or the derived levels do not
    straddle the entry price.
    """
    settings = settings or get_settings()

    needed = required_history(
        settings.bollinger_period, settings.rsi_period, settings.volume_period,
    )
    if len(series) < needed:
        logger.debug(
            "%s: %d sample(s), need %d for a signal", series.instrument, len(series), needed,
        )
        return None

    ind = compute_indicators(
        series,
        bollinger_period=settings.bollinger_period,
        bollinger_deviation=settings.bollinger_deviation,
        rsi_period=settings.rsi_period,
        volume_period=settings.volume_period,
    )
    entry = ind.price
    if entry <= 0:
        return None

    score = volatility_score(ind, settings)
    if score < settings.confidence_threshold:
        return None

    direction = determine_direction(ind)
    if direction is None:
        logger.debug("%s: score %.2f but no clear direction", series.instrument, score)
        return None

    target, stop = price_levels(entry, direction, ind, settings)
    roi = expected_return(entry, target, direction)

    # Hard gate: a qualifying direction does not rescue a thin target.
    if roi < settings.min_expected_roi:
        logger.debug(
            "%s: %s expected return %.2f%% below %.2f%%",
            series.instrument, direction.value, roi, settings.min_expected_roi,
        )
        return None

    if not _levels_ordered(entry, target, stop, direction):
        logger.debug(
            "%s: %s levels not ordered (entry=%.4f target=%.4f stop=%.4f)",
            series.instrument, direction.value, entry, target, stop,
        )
        return None

    created_at = now or datetime.now(timezone.utc)
    return Signal(
        id=make_signal_id(series.instrument, direction, created_at),
        instrument=series.instrument,
        direction=direction,
        entry_price=entry,
        target_price=target,
        stop_loss=stop,
        expected_return_pct=roi,
        confidence=score,
        indicators=ind,
        created_at=created_at,
        timeframe=settings.signal_timeframe,
    )


def generate_signals(
    series_by_instrument: dict[str, PriceSeries],
    settings: Settings | None = None,
    now: datetime | None = None,
) -> list[Signal]:
    """Classify every instrument; at most one signal each, sorted by instrument."""
    settings = settings or get_settings()
    created_at = now or datetime.now(timezone.utc)

    signals: list[Signal] = []
    for instrument in sorted(series_by_instrument):
        signal = generate_signal(series_by_instrument[instrument], settings, created_at)
        if signal is not None:
            signals.append(signal)
    return signals
