"""Tests for the trading window policy."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from vol_edge.trading.window import TradingWindow

NY = ZoneInfo("America/New_York")


@pytest.fixture
def window(settings):
    return TradingWindow.from_settings(settings)


def ny(year, month, day, hour, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=NY)


class TestIsOpen:
    @pytest.mark.parametrize("moment, expected", [
        (ny(2025, 7, 15, 9, 29, 59), False),
        (ny(2025, 7, 15, 9, 30), True),
        (ny(2025, 7, 15, 12, 0), True),
        (ny(2025, 7, 15, 15, 59, 59), True),
        (ny(2025, 7, 15, 16, 0), False),
        (ny(2025, 7, 15, 20, 0), False),
    ])
    def test_session_bounds(self, window, moment, expected):
        assert window.is_open(moment) is expected

    def test_weekend_closed(self, window):
        assert not window.is_open(ny(2025, 7, 19, 12, 0))  # Saturday

    def test_weekend_trading_enabled(self, settings):
        tw = TradingWindow.from_settings(settings.model_copy(update={"trade_weekends": True}))
        assert tw.is_open(ny(2025, 7, 19, 12, 0))

    def test_converts_from_utc(self, window):
        # 13:45 UTC is 09:45 EDT
        assert window.is_open(datetime(2025, 7, 15, 13, 45, tzinfo=timezone.utc))
        # 13:45 UTC is 08:45 EST in winter
        assert not window.is_open(datetime(2025, 1, 14, 13, 45, tzinfo=timezone.utc))

    def test_naive_datetime_is_utc(self, window):
        assert window.is_open(datetime(2025, 7, 15, 15, 0))


class TestFlatten:
    @pytest.mark.parametrize("moment, expected", [
        (ny(2025, 7, 15, 15, 54, 59), False),
        (ny(2025, 7, 15, 15, 55), True),
        (ny(2025, 7, 15, 15, 59), True),
        (ny(2025, 7, 15, 16, 0), False),
    ])
    def test_margin_before_close(self, window, moment, expected):
        assert window.should_flatten(moment) is expected

    def test_not_on_weekend(self, window):
        assert not window.should_flatten(ny(2025, 7, 19, 15, 57))

    def test_custom_margin(self, settings):
        tw = TradingWindow.from_settings(settings.model_copy(update={"flatten_margin_minutes": 15}))
        assert tw.should_flatten(ny(2025, 7, 15, 15, 46))


def test_time_to_close(window):
    assert window.time_to_close(ny(2025, 7, 15, 15, 30)) == timedelta(minutes=30)
    assert window.time_to_close(ny(2025, 7, 15, 17, 0)) is None


def test_trading_day_uses_session_zone(window):
    # 02:00 UTC on the 16th is still the 15th in New York
    assert window.trading_day(datetime(2025, 7, 16, 2, 0, tzinfo=timezone.utc)) == date(2025, 7, 15)


def test_from_settings(window):
    assert window.start == time(9, 30)
    assert window.end == time(16, 0)
    assert window.flatten_margin == timedelta(minutes=5)
    assert not window.weekends
