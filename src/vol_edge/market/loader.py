"""CSV price history loading and tick-by-tick replay.

Expected columns: ``timestamp,instrument,price,volume``. Timestamps are
ISO 8601; naive values are read as UTC.
"""

from __future__ import annotations

import csv
import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from vol_edge.market.models import PriceSeries

logger = logging.getLogger(__name__)

_REQUIRED_COLUMNS = {"timestamp", "instrument", "price", "volume"}


def _parse_timestamp(raw: str) -> datetime:
    ts = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def load_price_csv(path: Path | str) -> dict[str, PriceSeries]:
    """Load every instrument in a price CSV into chronological series.

    Raises:
        ValueError: missing columns or an unparseable row (line number is
            included in the message)
    """
    rows: dict[str, list[tuple[datetime, float, float]]] = defaultdict(list)

    with open(path, newline="", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        missing = _REQUIRED_COLUMNS - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path}: missing column(s) {', '.join(sorted(missing))}")

        for line_no, row in enumerate(reader, start=2):
            try:
                instrument = row["instrument"].strip().upper()
                rows[instrument].append((
                    _parse_timestamp(row["timestamp"]),
                    float(row["price"]),
                    float(row["volume"]),
                ))
            except (ValueError, AttributeError) as exc:
                raise ValueError(f"{path}:{line_no}: bad row {row!r}: {exc}") from exc

    series: dict[str, PriceSeries] = {}
    for instrument, samples in sorted(rows.items()):
        samples.sort(key=lambda s: s[0])
        series[instrument] = PriceSeries(
            instrument=instrument,
            prices=[s[1] for s in samples],
            volumes=[s[2] for s in samples],
            timestamps=[s[0] for s in samples],
        )

    logger.debug("Loaded %d instrument(s) from %s", len(series), path)
    return series


class CsvPriceFeed:
    """Replays a price CSV one sample per fetch.

    Each ``fetch`` advances a shared cursor by one sample and returns every
    requested instrument's history up to the cursor, trimmed to ``window``
    samples when given. Instruments with no samples yet are omitted.
    """

    def __init__(self, path: Path | str, window: int | None = None) -> None:
        self._series = load_price_csv(path)
        self._window = window
        self._cursor = 0

    @property
    def instruments(self) -> list[str]:
        return list(self._series)

    @property
    def length(self) -> int:
        return max((len(s) for s in self._series.values()), default=0)

    @property
    def exhausted(self) -> bool:
        return self._cursor >= self.length

    async def fetch(self, instruments: list[str]) -> dict[str, PriceSeries]:
        if not self.exhausted:
            self._cursor += 1

        result: dict[str, PriceSeries] = {}
        for instrument in instruments:
            full = self._series.get(instrument)
            if full is None:
                logger.debug("No replay data for %s", instrument)
                continue
            end = min(self._cursor, len(full))
            if end == 0:
                continue
            start = max(0, end - self._window) if self._window else 0
            result[instrument] = PriceSeries(
                instrument=instrument,
                prices=full.prices[start:end],
                volumes=full.volumes[start:end],
                timestamps=full.timestamps[start:end],
            )
        return result
