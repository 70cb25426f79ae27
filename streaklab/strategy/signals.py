"""
Entry signal detection for streak and gap templates.

Signals are a pure function of the bars up to and including the evaluated
index. Missing history (index 0, regime MA not yet defined) yields no signal
rather than an error.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..data.prices import PriceBar
from ..observability.logger import get_logger
from .spec import Direction, GapFadeSpec, StrategySpec

logger = get_logger(__name__)


class Side(Enum):
    """Position side."""
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def opposite(self) -> "Side":
        return Side.SHORT if self is Side.LONG else Side.LONG


@dataclass(frozen=True)
class Signal:
    """Entry signal with metadata."""
    side: Side
    reason: str
    entry_price: float
    template: str
    symbol: str
    index: int


def calculate_sma(closes: Sequence[float], length: int) -> np.ndarray:
    """
    Simple moving average of closes.

    Returns:
        Array aligned with closes; NaN until `length` bars are available.
    """
    values = np.asarray(closes, dtype=float)
    ma = np.full(len(values), np.nan)
    if length <= 0 or len(values) < length:
        return ma
    cumsum = np.cumsum(np.insert(values, 0, 0.0))
    ma[length - 1:] = (cumsum[length:] - cumsum[:-length]) / length
    return ma


def count_streak(prices: Sequence[PriceBar], index: int) -> Tuple[int, int]:
    """
    Count consecutive up and down closes ending at `index`.

    A flat close ends the streak, so equal closes never extend it.

    Returns:
        Tuple of (up_streak, down_streak); at most one is non-zero.
    """
    up = 0
    down = 0
    for j in range(index, 0, -1):
        close = prices[j].close
        prev_close = prices[j - 1].close
        if close > prev_close:
            if down:
                break
            up += 1
        elif close < prev_close:
            if up:
                break
            down += 1
        else:
            break
    return up, down


def gap_percent(prices: Sequence[PriceBar], index: int) -> float:
    """Opening gap of bar `index` relative to the prior close."""
    prev_close = prices[index - 1].close
    return (prices[index].open - prev_close) / prev_close


class SignalDetector:
    """
    Evaluates a spec's entry rule at any bar of a fixed price series.

    The regime moving average is computed once per series; detection itself
    has no side effects, so one detector can serve a whole run.
    """

    def __init__(self, spec: StrategySpec, prices: Sequence[PriceBar]):
        self.spec = spec
        self.prices = prices
        self._ma: Optional[np.ndarray] = None
        if spec.regime_filter is not None:
            self._ma = calculate_sma([bar.close for bar in prices], spec.regime_filter.length)

    def regime_allows(self, index: int, side: Side) -> bool:
        """
        Check the regime filter for a candidate side at `index`.

        Shorts are refused above the MA and longs below it. No filter means
        everything passes; a filter whose MA is not yet defined passes nothing.
        """
        if self._ma is None:
            return True
        ma = self._ma[index]
        if np.isnan(ma):
            return False
        close = self.prices[index].close
        if close > ma and side is Side.SHORT:
            return False
        if close < ma and side is Side.LONG:
            return False
        return True

    def detect(self, index: int) -> Optional[Signal]:
        """
        Determine whether bar `index` triggers an entry.

        Args:
            index: Bar index, must be >= 1 to have a prior bar.

        Returns:
            Signal or None.
        """
        if index < 1 or index >= len(self.prices):
            return None

        if isinstance(self.spec, GapFadeSpec):
            candidate = self._detect_gap(index)
        else:
            candidate = self._detect_streak(index)

        if candidate is None:
            return None

        side, reason, entry_price = candidate
        if not self.regime_allows(index, side):
            logger.debug(
                "Signal rejected by regime filter",
                index=index,
                side=side.value,
                template=self.spec.template.value
            )
            return None

        signal = Signal(
            side=side,
            reason=reason,
            entry_price=entry_price,
            template=self.spec.template.value,
            symbol=self.spec.symbol,
            index=index,
        )
        logger.signal(signal.template, signal.symbol, side.value, reason, index=index)
        return signal

    def _detect_gap(self, index: int) -> Optional[Tuple[Side, str, float]]:
        gap = gap_percent(self.prices, index)
        if abs(gap) < self.spec.gap_threshold_pct:
            return None
        side = Side.SHORT if gap > 0 else Side.LONG
        reason = (
            f"Gap {'up' if gap > 0 else 'down'} of {abs(gap) * 100:.2f}% exceeds threshold"
        )
        return side, reason, self.prices[index].open

    def _detect_streak(self, index: int) -> Optional[Tuple[Side, str, float]]:
        up, down = count_streak(self.prices, index)
        fade = self.spec.direction is Direction.FADE
        verb = "fading" if fade else "following"

        if up >= self.spec.streak_length:
            side = Side.SHORT if fade else Side.LONG
            reason = f"{up} consecutive up days ({verb} trend)"
        elif down >= self.spec.streak_length:
            side = Side.LONG if fade else Side.SHORT
            reason = f"{down} consecutive down days ({verb} trend)"
        else:
            return None

        return side, reason, self.prices[index].close


def detect_signal(
    prices: Sequence[PriceBar],
    index: int,
    spec: StrategySpec
) -> Optional[Signal]:
    """Convenience wrapper: evaluate one bar without keeping a detector."""
    return SignalDetector(spec, prices).detect(index)


def check_signal_today(
    prices: Sequence[PriceBar],
    spec: StrategySpec,
    min_bars: int = 10
) -> Optional[Signal]:
    """
    Check whether the most recent bar triggers an entry.

    Args:
        prices: Recent bars, oldest first.
        spec: Strategy spec.
        min_bars: Fewer bars than this yields no signal.

    Returns:
        Signal or None.
    """
    if len(prices) < max(2, min_bars):
        return None
    return detect_signal(prices, len(prices) - 1, spec)


def check_signals_for_specs(
    prices: Sequence[PriceBar],
    specs: Sequence[Tuple[str, StrategySpec]],
    min_bars: int = 10
) -> List[Tuple[str, Signal]]:
    """
    Check the latest bar against several named specs.

    Returns:
        (name, signal) pairs for the specs that fire.
    """
    results: List[Tuple[str, Signal]] = []
    for name, spec in specs:
        signal = check_signal_today(prices, spec, min_bars=min_bars)
        if signal:
            results.append((name, signal))
    return results
