"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from factories import make_series, spike_prices, spike_volumes
from vol_edge.config import Settings
from vol_edge.trading.lifecycle import LifecycleManager
from vol_edge.trading.risk import RiskManager


@pytest.fixture
def settings(tmp_path):
    """Default thresholds, isolated from any .env on the test machine."""
    return Settings(
        _env_file=None,
        watchlist=["AAPL", "MSFT"],
        db_path=tmp_path / "journal.db",
        telegram_bot_token="",
        telegram_chat_id="",
    )


@pytest.fixture
def now():
    """Tuesday 2025-07-15 11:00 New York (EDT), inside the trading window."""
    return datetime(2025, 7, 15, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def spike_series():
    """25 samples whose closing spike and volume surge classify as BUY.

    sma 100.1, bands ~96.21/103.99, RSI ~53.8, volume 214% of average,
    price change +2.0%: score 0.75, target 103.53, stop 101.49, ROI 1.5%.
    """
    return make_series(spike_prices(), spike_volumes())


@pytest.fixture
def flat_series():
    return make_series([100.0] * 25)


@pytest.fixture
def lifecycle():
    return LifecycleManager(capital_per_instrument=1000.0, max_loss_per_trade=50.0, allow_short=False)


@pytest.fixture
def risk(lifecycle, settings):
    return RiskManager(lifecycle, settings)
