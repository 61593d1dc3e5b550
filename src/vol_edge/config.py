"""Application configuration via pydantic-settings."""

from __future__ import annotations

from datetime import time
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` 24-hour clock string."""
    try:
        hour_str, minute_str = value.strip().split(":")
        return time(int(hour_str), int(minute_str))
    except ValueError as exc:
        raise ValueError(f"expected HH:MM, got {value!r}") from exc


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Instruments polled each tick
    watchlist: list[str] = ["AAPL", "MSFT", "GOOGL", "AMZN", "META"]

    # Bollinger band window and width (in standard deviations)
    bollinger_period: int = 20
    bollinger_deviation: float = 2.0

    # RSI lookback and thresholds
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0

    # Volume average lookback; surge threshold as % of that average
    volume_period: int = 10
    volume_threshold: float = 150.0

    # Minimum |last price change| in percent to count as volatile
    min_volatility_percent: float = 1.0

    # Minimum expected return (percent) for a signal to be emitted
    min_expected_roi: float = 1.5

    # Stop distance from entry, in percent
    stop_loss_percent: float = 0.5

    # Composite volatility score needed to classify (0-1)
    confidence_threshold: float = 0.7

    # Descriptive holding horizon attached to signals
    signal_timeframe: str = "1-3 hours"

    # Capital committed per opened position
    capital_per_instrument: float = 1000.0

    # Dollar loss limits
    max_loss_per_trade: float = 50.0
    max_daily_loss: float = 200.0

    # Open shorts on SELL signals when flat (long-only otherwise)
    allow_short: bool = False

    # Trading window, local to trading_timezone
    trading_start: str = "09:30"
    trading_end: str = "16:00"
    trading_timezone: str = "America/New_York"
    trade_weekends: bool = False

    # Minutes before trading_end at which open positions get flattened
    flatten_margin_minutes: int = 5

    # Polling loop interval
    poll_interval_seconds: int = 300

    # Number of recent signals kept in memory by the monitor
    signal_history_size: int = 100

    log_level: str = "INFO"

    # SQLite journal for signals and closed positions
    db_path: Path = Path.home() / ".vol-edge" / "journal.db"

    # HTTP request timeout seconds
    http_timeout: float = 30.0

    # Telegram notifications
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_enabled: bool = False

    @field_validator(
        "bollinger_period",
        "rsi_period",
        "volume_period",
        "flatten_margin_minutes",
        "signal_history_size",
    )
    @classmethod
    def _period_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be > 0, got {v}")
        return v

    @field_validator(
        "bollinger_deviation",
        "volume_threshold",
        "min_volatility_percent",
        "min_expected_roi",
        "stop_loss_percent",
        "capital_per_instrument",
        "max_loss_per_trade",
        "max_daily_loss",
        "http_timeout",
    )
    @classmethod
    def _threshold_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"must be > 0, got {v}")
        return v

    @field_validator("poll_interval_seconds")
    @classmethod
    def _interval_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"poll_interval_seconds must be >= 0, got {v}")
        return v

    @field_validator("confidence_threshold")
    @classmethod
    def _confidence_in_range(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"confidence_threshold must be in (0, 1], got {v}")
        return v

    @field_validator("rsi_overbought", "rsi_oversold")
    @classmethod
    def _rsi_in_range(cls, v: float) -> float:
        if not 0.0 < v < 100.0:
            raise ValueError(f"RSI threshold must be in (0, 100), got {v}")
        return v

    @field_validator("trading_start", "trading_end")
    @classmethod
    def _clock_parses(cls, v: str) -> str:
        parse_clock(v)
        return v

    @field_validator("trading_timezone")
    @classmethod
    def _zone_exists(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone {v!r}") from exc
        return v

    @field_validator("watchlist")
    @classmethod
    def _normalize_watchlist(cls, v: list[str]) -> list[str]:
        return [s.strip().upper() for s in v if s.strip()]

    @model_validator(mode="after")
    def _check_ranges(self) -> Settings:
        if self.rsi_oversold >= self.rsi_overbought:
            raise ValueError(
                f"rsi_oversold ({self.rsi_oversold}) must be below "
                f"rsi_overbought ({self.rsi_overbought})"
            )
        if parse_clock(self.trading_start) >= parse_clock(self.trading_end):
            raise ValueError(
                f"trading_start ({self.trading_start}) must be before "
                f"trading_end ({self.trading_end})"
            )
        return self

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.trading_timezone)


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
