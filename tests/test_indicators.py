"""Tests for the indicator engine."""

from __future__ import annotations

import pytest

from factories import make_series, spike_prices, spike_volumes
from vol_edge.indicators.engine import (
    NEUTRAL_RSI,
    bollinger_bands,
    compute_indicators,
    population_std,
    price_change,
    required_history,
    rsi,
    sma,
    volume_ratio,
)


class TestMovingAverage:
    def test_uses_trailing_window(self):
        assert sma([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)

    def test_short_window_is_zero(self):
        assert sma([1, 2], 3) == 0.0

    def test_population_std(self):
        # ddof=0: std of [2, 4, 4, 4, 5, 5, 7, 9] is exactly 2
        assert population_std([2, 4, 4, 4, 5, 5, 7, 9], 8) == pytest.approx(2.0)


class TestBollingerBands:
    def test_flat_series_has_zero_width(self):
        mean, upper, lower = bollinger_bands([100.0] * 20, 20, 2.0)
        assert mean == upper == lower == pytest.approx(100.0)

    def test_band_ordering(self):
        mean, upper, lower = bollinger_bands(spike_prices(), 20, 2.0)
        assert lower <= mean <= upper

    def test_spike_window_values(self):
        mean, upper, lower = bollinger_bands(spike_prices(), 20, 2.0)
        assert mean == pytest.approx(100.1)
        assert upper == pytest.approx(103.9936, abs=1e-3)
        assert lower == pytest.approx(96.2064, abs=1e-3)

    def test_short_window_defaults(self):
        assert bollinger_bands([100.0] * 19, 20, 2.0) == (0.0, 0.0, 0.0)


class TestRsi:
    def test_short_window_is_neutral(self):
        assert rsi([100.0] * 14, 14) == NEUTRAL_RSI

    def test_no_losses_is_100(self):
        assert rsi([float(p) for p in range(100, 116)], 14) == 100.0

    def test_flat_is_100(self):
        # zero average loss takes precedence over zero gain
        assert rsi([100.0] * 15, 14) == 100.0

    def test_all_losses_is_0(self):
        assert rsi([float(p) for p in range(115, 99, -1)], 14) == pytest.approx(0.0)

    def test_mixed_moves(self):
        assert rsi(spike_prices(), 14) == pytest.approx(53.846, abs=1e-3)

    @pytest.mark.parametrize("prices", [
        [100, 101, 99, 103, 98, 97, 104, 110, 90, 91, 92, 95, 96, 99, 100],
        [50 + (i % 3) for i in range(30)],
    ])
    def test_bounded(self, prices):
        assert 0.0 <= rsi(prices, 14) <= 100.0


class TestVolumeAndChange:
    def test_volume_ratio(self):
        assert volume_ratio(spike_volumes(), 10) == pytest.approx(3000 / 1400 * 100)

    def test_volume_ratio_short_window(self):
        assert volume_ratio([1000.0] * 5, 10) == 0.0

    def test_volume_ratio_zero_average(self):
        assert volume_ratio([0.0] * 10, 10) == 0.0

    def test_price_change(self):
        assert price_change([100.0, 102.0]) == pytest.approx(2.0)
        assert price_change([100.0, 97.0]) == pytest.approx(-3.0)

    def test_price_change_needs_two_samples(self):
        assert price_change([100.0]) == 0.0
        assert price_change([]) == 0.0

    def test_price_change_from_zero(self):
        assert price_change([0.0, 5.0]) == 0.0


def test_required_history_defaults():
    assert required_history() == 20
    assert required_history(bollinger_period=5, rsi_period=14, volume_period=10) == 15
    assert required_history(bollinger_period=5, rsi_period=3, volume_period=30) == 30


def test_compute_indicators_spike(spike_series):
    ind = compute_indicators(spike_series)
    assert ind.price == 102.0
    assert ind.sma == pytest.approx(100.1)
    assert ind.rsi == pytest.approx(53.846, abs=1e-3)
    assert ind.volume_ratio == pytest.approx(214.2857, abs=1e-3)
    assert ind.price_change == pytest.approx(2.0)


def test_compute_indicators_empty_series():
    ind = compute_indicators(make_series([], []))
    assert ind.price == 0.0
    assert ind.sma == ind.upper_band == ind.lower_band == 0.0
    assert ind.rsi == NEUTRAL_RSI
    assert ind.volume_ratio == 0.0
    assert ind.price_change == 0.0


def test_compute_indicators_does_not_mutate(spike_series):
    before = list(spike_series.prices)
    compute_indicators(spike_series)
    assert spike_series.prices == before


def test_as_dict_keys(spike_series):
    d = compute_indicators(spike_series).as_dict()
    assert set(d) == {
        "price", "sma", "upper_band", "lower_band", "rsi", "volume_ratio", "price_change",
    }
