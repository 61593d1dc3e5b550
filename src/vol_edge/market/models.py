"""Market data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class PriceSeries:
    """Price/volume history for one instrument.

    Parallel arrays in chronological order, most recent sample last. The
    series is a snapshot handed over by the market-data collaborator and is
    never mutated by the core.

    Attributes:
        instrument: ticker symbol
        prices: sampled prices
        volumes: traded volume per sample
        timestamps: sample times (may be empty when the feed has none)
    """

    instrument: str
    prices: list[float]
    volumes: list[float]
    timestamps: list[datetime] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.prices) != len(self.volumes):
            raise ValueError(
                f"{self.instrument}: {len(self.prices)} prices but "
                f"{len(self.volumes)} volumes"
            )
        if self.timestamps and len(self.timestamps) != len(self.prices):
            raise ValueError(
                f"{self.instrument}: {len(self.prices)} prices but "
                f"{len(self.timestamps)} timestamps"
            )

    def __len__(self) -> int:
        return len(self.prices)

    @property
    def latest_price(self) -> float:
        """Most recent price, 0.0 for an empty series."""
        return self.prices[-1] if self.prices else 0.0

    @property
    def latest_timestamp(self) -> datetime | None:
        return self.timestamps[-1] if self.timestamps else None

    def window(self, size: int) -> PriceSeries:
        """Trailing slice of at most ``size`` samples."""
        if size <= 0:
            raise ValueError(f"window size must be > 0, got {size}")
        return PriceSeries(
            instrument=self.instrument,
            prices=self.prices[-size:],
            volumes=self.volumes[-size:],
            timestamps=self.timestamps[-size:],
        )
