"""
Daily price bars and local CSV loading for backtesting.
"""

import csv
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..observability.logger import get_logger

logger = get_logger(__name__)


class PriceDataError(ValueError):
    """Raised when a price series is malformed or too short to use."""


@dataclass(frozen=True)
class PriceBar:
    """One trading day of OHLC data."""
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


def parse_date(value: str) -> date:
    """Parse an ISO calendar date (YYYY-MM-DD)."""
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise PriceDataError(f"Invalid date {value!r}: expected YYYY-MM-DD") from e


def validate_bars(bars: Sequence[PriceBar]) -> None:
    """
    Check that every date is ISO and bars are strictly ascending by date.

    Raises:
        PriceDataError: On unparseable, duplicate or out-of-order dates.
    """
    dates = [parse_date(bar.date) for bar in bars]
    for i in range(1, len(bars)):
        if dates[i] == dates[i - 1]:
            raise PriceDataError(f"Duplicate bar for {bars[i].date}")
        if dates[i] < dates[i - 1]:
            raise PriceDataError(f"Bars out of order: {bars[i - 1].date} before {bars[i].date}")


def bars_from_records(records: Iterable[dict]) -> List[PriceBar]:
    """Build validated bars from dict records (e.g. decoded JSON rows)."""
    bars = [
        PriceBar(
            date=parse_date(r["date"]).isoformat(),
            open=float(r["open"]),
            high=float(r["high"]),
            low=float(r["low"]),
            close=float(r["close"]),
            volume=float(r.get("volume", 0.0)),
        )
        for r in records
    ]
    validate_bars(bars)
    return bars


def tail(bars: Sequence[PriceBar], lookback_days: Optional[int]) -> List[PriceBar]:
    """Return the most recent lookback_days bars (all of them if None)."""
    if lookback_days is None or lookback_days >= len(bars):
        return list(bars)
    return list(bars[-lookback_days:])


def load_prices_csv(path: str, lookback_days: Optional[int] = None) -> List[PriceBar]:
    """
    Load daily bars from a Date,Open,High,Low,Close,Volume CSV.

    Dates must be ISO (YYYY-MM-DD) and are stored in that canonical form.
    The header row and blank lines are skipped. Rows are sorted by date
    before validation so vendor files in descending order load correctly.

    Args:
        path: CSV file path.
        lookback_days: Keep only the most recent N bars.

    Returns:
        Bars in ascending date order.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise PriceDataError(f"Price file not found: {csv_path}")

    bars: List[PriceBar] = []
    with open(csv_path, "r", newline="") as f:
        reader = csv.reader(f)
        for line_no, row in enumerate(reader, start=1):
            if not row or not row[0].strip():
                continue
            if row[0].strip().lower() == "date":
                continue
            if len(row) < 5:
                raise PriceDataError(f"{csv_path}:{line_no}: expected at least 5 columns")
            try:
                bars.append(PriceBar(
                    date=parse_date(row[0]).isoformat(),
                    open=float(row[1]),
                    high=float(row[2]),
                    low=float(row[3]),
                    close=float(row[4]),
                    volume=float(row[5]) if len(row) > 5 and row[5].strip() else 0.0,
                ))
            except ValueError as e:
                raise PriceDataError(f"{csv_path}:{line_no}: {e}") from e

    bars.sort(key=lambda b: b.date)
    validate_bars(bars)

    logger.info(
        f"Loaded {len(bars)} bars from {csv_path}",
        first=bars[0].date if bars else None,
        last=bars[-1].date if bars else None
    )

    return tail(bars, lookback_days)


def available_symbols(prices_dir: str) -> List[str]:
    """Symbols with a <SYMBOL>.csv file in prices_dir, sorted."""
    directory = Path(prices_dir)
    if not directory.is_dir():
        return []
    return sorted(p.stem for p in directory.glob("*.csv"))
