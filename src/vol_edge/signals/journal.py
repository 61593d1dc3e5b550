"""SQLite journal for emitted signals and closed positions."""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite

from vol_edge.config import get_settings
from vol_edge.signals.models import Signal
from vol_edge.trading.models import Position

_CREATE_SIGNALS = """
CREATE TABLE IF NOT EXISTS signals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    signal_id TEXT NOT NULL UNIQUE,
    instrument TEXT NOT NULL,
    direction TEXT NOT NULL,
    entry_price REAL NOT NULL,
    target_price REAL NOT NULL,
    stop_loss REAL NOT NULL,
    expected_return_pct REAL NOT NULL,
    confidence REAL NOT NULL,
    timeframe TEXT,
    indicators TEXT,
    created_at TEXT NOT NULL
);
"""

_CREATE_POSITIONS = """
CREATE TABLE IF NOT EXISTS positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    position_id TEXT NOT NULL UNIQUE,
    signal_id TEXT,
    instrument TEXT NOT NULL,
    direction TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    entry_price REAL NOT NULL,
    exit_price REAL,
    realized_pnl REAL,
    close_reason TEXT,
    close_detail TEXT,
    opened_at TEXT NOT NULL,
    closed_at TEXT
);
"""

_CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_signals_instrument ON signals(instrument);",
    "CREATE INDEX IF NOT EXISTS idx_positions_instrument ON positions(instrument);",
)


class SignalJournal:
    """Append-only audit log backed by aiosqlite."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or get_settings().db_path
        self._ready = False

    async def _ensure_db(self) -> None:
        """Create database and tables if they don't exist."""
        if self._ready:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_SIGNALS)
            await db.execute(_CREATE_POSITIONS)
            for stmt in _CREATE_INDEXES:
                await db.execute(stmt)
            await db.commit()
        self._ready = True

    async def log_signal(self, signal: Signal) -> int:
        """Log a signal. Returns the row ID (existing row for a repeated ID)."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                """INSERT OR IGNORE INTO signals
                   (signal_id, instrument, direction, entry_price, target_price,
                    stop_loss, expected_return_pct, confidence, timeframe,
                    indicators, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    signal.id,
                    signal.instrument,
                    signal.direction.value,
                    signal.entry_price,
                    signal.target_price,
                    signal.stop_loss,
                    signal.expected_return_pct,
                    signal.confidence,
                    signal.timeframe,
                    json.dumps(signal.indicators.as_dict()),
                    signal.created_at.isoformat(),
                ),
            )
            await db.commit()
            if cursor.rowcount:
                return cursor.lastrowid
            cursor = await db.execute(
                "SELECT id FROM signals WHERE signal_id = ?", (signal.id,),
            )
            row = await cursor.fetchone()
            return row[0]

    async def log_signals(self, signals: list[Signal]) -> list[int]:
        """Log multiple signals. Returns list of row IDs."""
        ids = []
        for signal in signals:
            ids.append(await self.log_signal(signal))
        return ids

    async def log_position(self, position: Position) -> int:
        """Record a position, replacing an earlier record with the same ID."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                """INSERT INTO positions
                   (position_id, signal_id, instrument, direction, quantity,
                    entry_price, exit_price, realized_pnl, close_reason,
                    close_detail, opened_at, closed_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT (position_id) DO UPDATE SET
                       exit_price = excluded.exit_price,
                       realized_pnl = excluded.realized_pnl,
                       close_reason = excluded.close_reason,
                       close_detail = excluded.close_detail,
                       closed_at = excluded.closed_at""",
                (
                    position.id,
                    position.signal_id,
                    position.instrument,
                    position.direction.value,
                    position.quantity,
                    position.entry_price,
                    position.exit_price,
                    position.realized_pnl,
                    position.close_reason.value if position.close_reason else None,
                    position.close_detail,
                    position.opened_at.isoformat(),
                    position.closed_at.isoformat() if position.closed_at else None,
                ),
            )
            await db.commit()
            cursor = await db.execute(
                "SELECT id FROM positions WHERE position_id = ?", (position.id,),
            )
            row = await cursor.fetchone()
            return row[0]

    async def log_positions(self, positions: list[Position]) -> list[int]:
        ids = []
        for position in positions:
            ids.append(await self.log_position(position))
        return ids

    async def get_closed_positions(
        self, instrument: str | None = None, limit: int = 100,
    ) -> list[dict]:
        """Most recent closed positions, optionally for one instrument."""
        await self._ensure_db()
        query = "SELECT * FROM positions WHERE closed_at IS NOT NULL"
        params: tuple = ()
        if instrument:
            query += " AND instrument = ?"
            params = (instrument,)
        query += " ORDER BY closed_at DESC, id DESC LIMIT ?"
        params += (limit,)

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_performance_summary(self) -> dict:
        """Signal counts plus win rate and PnL over closed positions."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row

            cursor = await db.execute("SELECT COUNT(*) AS total FROM signals")
            total = (await cursor.fetchone())["total"]

            cursor = await db.execute(
                """SELECT COUNT(*) AS closed,
                          SUM(CASE WHEN realized_pnl > 0 THEN 1 ELSE 0 END) AS wins,
                          SUM(realized_pnl) AS total_pnl,
                          AVG(realized_pnl * 100.0 / (entry_price * quantity)) AS avg_return
                   FROM positions WHERE closed_at IS NOT NULL"""
            )
            row = await cursor.fetchone()
            closed = row["closed"]
            wins = row["wins"] or 0

            cursor = await db.execute(
                """SELECT instrument,
                          COUNT(*) AS closed,
                          SUM(CASE WHEN realized_pnl > 0 THEN 1 ELSE 0 END) AS wins,
                          SUM(realized_pnl) AS total_pnl
                   FROM positions WHERE closed_at IS NOT NULL
                   GROUP BY instrument ORDER BY instrument"""
            )
            by_instrument = {
                r["instrument"]: {
                    "closed": r["closed"],
                    "wins": r["wins"],
                    "total_pnl": r["total_pnl"],
                }
                for r in await cursor.fetchall()
            }

            return {
                "total_signals": total,
                "closed_positions": closed,
                "wins": wins,
                "win_rate": wins / closed if closed > 0 else None,
                "total_pnl": row["total_pnl"] or 0.0,
                "avg_return_pct": row["avg_return"],
                "by_instrument": by_instrument,
            }
