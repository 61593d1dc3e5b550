"""Trading-window and end-of-day flatten policy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from vol_edge.config import Settings, parse_clock


@dataclass(frozen=True)
class TradingWindow:
    """Daily trading session in a fixed time zone.

    Attributes:
        start: session open (inclusive), local clock time
        end: session close (exclusive), local clock time
        zone: session time zone
        weekends: trade Saturday/Sunday too
        flatten_margin: lead time before ``end`` when positions get flattened
    """

    start: time
    end: time
    zone: ZoneInfo
    weekends: bool = False
    flatten_margin: timedelta = timedelta(minutes=5)

    @classmethod
    def from_settings(cls, settings: Settings) -> TradingWindow:
        return cls(
            start=parse_clock(settings.trading_start),
            end=parse_clock(settings.trading_end),
            zone=settings.zone,
            weekends=settings.trade_weekends,
            flatten_margin=timedelta(minutes=settings.flatten_margin_minutes),
        )

    def local(self, now: datetime) -> datetime:
        """Convert to the window's zone; naive datetimes are taken as UTC."""
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.zone)

    def trading_day(self, now: datetime) -> date:
        return self.local(now).date()

    def is_trading_day(self, now: datetime) -> bool:
        return self.weekends or self.local(now).weekday() < 5

    def is_open(self, now: datetime) -> bool:
        local = self.local(now)
        if not self.is_trading_day(local):
            return False
        return self.start <= local.time() < self.end

    def _close_at(self, local: datetime) -> datetime:
        return datetime.combine(local.date(), self.end, tzinfo=self.zone)

    def should_flatten(self, now: datetime) -> bool:
        """True within ``flatten_margin`` before the session end."""
        local = self.local(now)
        if not self.is_trading_day(local):
            return False
        close_at = self._close_at(local)
        return close_at - self.flatten_margin <= local < close_at

    def time_to_close(self, now: datetime) -> timedelta | None:
        """Remaining session time, None when the window is closed."""
        if not self.is_open(now):
            return None
        local = self.local(now)
        return self._close_at(local) - local
