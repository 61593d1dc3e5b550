"""Tests for the SQLite signal and position journal."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from unittest.mock import patch

import pytest

from factories import make_signal
from vol_edge.signals.journal import SignalJournal
from vol_edge.signals.models import Direction
from vol_edge.trading.models import CloseReason, Position, PositionStatus


@pytest.fixture
def journal(tmp_path):
    """Journal on a temporary database, resolved through settings."""
    with patch("vol_edge.signals.journal.get_settings") as mock_settings:
        mock_settings.return_value.db_path = tmp_path / "nested" / "journal.db"
        yield SignalJournal()


def _position(instrument="AAPL", pnl=None, now=None, pid=None):
    position = Position(
        id=pid or f"{instrument}-0001",
        instrument=instrument,
        direction=Direction.BUY,
        quantity=10,
        entry_price=100.0,
        opened_at=now,
        signal_id=f"SIG-{instrument}",
    )
    if pnl is not None:
        position = replace(
            position,
            status=PositionStatus.CLOSED,
            exit_price=100.0 + pnl / 10,
            realized_pnl=pnl,
            close_reason=CloseReason.SIGNAL,
            closed_at=now + timedelta(minutes=30),
        )
    return position


@pytest.mark.asyncio
async def test_log_signal(journal, now):
    row_id = await journal.log_signal(make_signal(created_at=now))
    assert row_id == 1


@pytest.mark.asyncio
async def test_log_multiple_signals(journal, now):
    signals = [make_signal(created_at=now + timedelta(seconds=i)) for i in range(4)]
    ids = await journal.log_signals(signals)
    assert ids == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_duplicate_signal_id_logged_once(journal, now):
    signal = make_signal(created_at=now)
    first = await journal.log_signal(signal)
    second = await journal.log_signal(signal)
    assert first == second

    summary = await journal.get_performance_summary()
    assert summary["total_signals"] == 1


@pytest.mark.asyncio
async def test_position_upsert(journal, now):
    await journal.log_position(_position(now=now))
    await journal.log_position(_position(pnl=25.0, now=now))

    closed = await journal.get_closed_positions()
    assert len(closed) == 1
    assert closed[0]["realized_pnl"] == pytest.approx(25.0)
    assert closed[0]["close_reason"] == "signal"


@pytest.mark.asyncio
async def test_open_positions_not_listed_as_closed(journal, now):
    await journal.log_position(_position(now=now))
    assert await journal.get_closed_positions() == []


@pytest.mark.asyncio
async def test_closed_positions_filter(journal, now):
    await journal.log_positions([
        _position("AAPL", pnl=10.0, now=now),
        _position("MSFT", pnl=-5.0, now=now),
    ])
    rows = await journal.get_closed_positions(instrument="MSFT")
    assert [r["instrument"] for r in rows] == ["MSFT"]


@pytest.mark.asyncio
async def test_performance_summary(journal, now):
    await journal.log_signals([make_signal("AAPL", created_at=now), make_signal("MSFT", created_at=now)])
    await journal.log_positions([
        _position("AAPL", pnl=30.0, now=now, pid="p1"),
        _position("AAPL", pnl=-10.0, now=now, pid="p2"),
        _position("MSFT", pnl=20.0, now=now, pid="p3"),
        _position("MSFT", now=now, pid="p4"),
    ])

    summary = await journal.get_performance_summary()

    assert summary["total_signals"] == 2
    assert summary["closed_positions"] == 3
    assert summary["wins"] == 2
    assert summary["win_rate"] == pytest.approx(2 / 3)
    assert summary["total_pnl"] == pytest.approx(40.0)
    assert summary["avg_return_pct"] == pytest.approx((3.0 - 1.0 + 2.0) / 3)
    assert summary["by_instrument"]["AAPL"] == {"closed": 2, "wins": 1, "total_pnl": 20.0}
    assert summary["by_instrument"]["MSFT"]["closed"] == 1


@pytest.mark.asyncio
async def test_empty_summary(journal):
    summary = await journal.get_performance_summary()
    assert summary["total_signals"] == 0
    assert summary["closed_positions"] == 0
    assert summary["win_rate"] is None
    assert summary["total_pnl"] == 0.0
