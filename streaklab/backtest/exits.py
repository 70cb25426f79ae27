"""
Exit resolution for an open position.

Steps forward bar by bar from the entry, applying stop-loss, take-profit and
trailing-stop rules within the holding horizon. OHLC bars cannot tell which
level was touched first, so the stop-loss is checked first and wins any
same-bar tie.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from ..data.prices import PriceBar
from ..strategy.signals import Side
from ..strategy.spec import StrategySpec


class ExitReason(Enum):
    """Why a trade closed."""
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    TRAILING_STOP = "TRAILING_STOP"
    TIME_EXIT = "TIME_EXIT"
    SAR_FLIP = "SAR_FLIP"


@dataclass(frozen=True)
class ExitResult:
    """Where and why a simulated position closed (price before exit slippage)."""
    exit_index: int
    exit_price: float
    exit_reason: ExitReason


def apply_slippage(price: float, side: Side, bps: float, is_entry: bool) -> float:
    """
    Move a fill against the trader by `bps` basis points.

    Longs pay up on entry and receive less on exit; shorts the reverse.
    """
    factor = bps / 10000
    if side is Side.LONG:
        return price * (1 + factor) if is_entry else price * (1 - factor)
    return price * (1 - factor) if is_entry else price * (1 + factor)


def entry_base_price(bar: PriceBar, spec: StrategySpec) -> float:
    """Raw entry price: the open for open-entry templates, else the close."""
    return bar.open if spec.entry_on == "open" else bar.close


def _stop_take_exit(
    side: Side,
    bar: PriceBar,
    stop_price: float,
    take_price: Optional[float]
) -> Optional[ExitResult]:
    if side is Side.LONG:
        stop_hit = bar.low <= stop_price
        take_hit = take_price is not None and bar.high >= take_price
    else:
        stop_hit = bar.high >= stop_price
        take_hit = take_price is not None and bar.low <= take_price

    # Stop wins when both levels are inside the same bar
    if stop_hit:
        return ExitResult(-1, stop_price, ExitReason.STOP_LOSS)
    if take_hit:
        return ExitResult(-1, take_price, ExitReason.TAKE_PROFIT)
    return None


class _TrailingTracker:
    """Running best price since entry and the stop level derived from it."""

    def __init__(self, side: Side, pct: float, entry_bar: PriceBar):
        self.side = side
        self.pct = pct
        self.peak = entry_bar.high
        self.trough = entry_bar.low

    def update(self, bar: PriceBar) -> Optional[float]:
        """Ratchet with `bar`; return the trail price if the bar crossed it."""
        if self.side is Side.LONG:
            self.peak = max(self.peak, bar.high)
            trail_price = self.peak * (1 - self.pct)
            return trail_price if bar.low <= trail_price else None

        self.trough = min(self.trough, bar.low)
        trail_price = self.trough * (1 + self.pct)
        return trail_price if bar.high >= trail_price else None


def simulate_exit(
    prices: Sequence[PriceBar],
    entry_index: int,
    side: Side,
    spec: StrategySpec
) -> ExitResult:
    """
    Simulate a position from entry to its single exit event.

    With hold_max_days == 0 only the entry bar is checked. Otherwise bars
    entry_index + 1 .. entry_index + hold_max_days are checked, and the trade
    falls back to a TIME_EXIT at the close of the last bar reached (the
    horizon is truncated when the series ends first).

    Args:
        prices: Full bar series.
        entry_index: Bar on which the position is opened.
        side: Position side.
        spec: Strategy spec.

    Returns:
        ExitResult with the exit bar, pre-slippage price and reason.
    """
    entry_bar = prices[entry_index]
    entry_price = apply_slippage(
        entry_base_price(entry_bar, spec), side, spec.costs.slippage_bps, is_entry=True
    )

    stop_loss_pct = spec.stop_loss_pct
    trailing_pct = spec.trailing_stop_pct
    take_profit_pct = spec.take_profit_pct if trailing_pct is None else None

    if side is Side.LONG:
        stop_price = entry_price * (1 - stop_loss_pct)
        take_price = entry_price * (1 + take_profit_pct) if take_profit_pct else None
    else:
        stop_price = entry_price * (1 + stop_loss_pct)
        take_price = entry_price * (1 - take_profit_pct) if take_profit_pct else None

    trailing = _TrailingTracker(side, trailing_pct, entry_bar) if trailing_pct is not None else None

    def evaluate(day_index: int) -> Optional[ExitResult]:
        bar = prices[day_index]
        hit = _stop_take_exit(side, bar, stop_price, take_price)
        if hit is not None:
            return ExitResult(day_index, hit.exit_price, hit.exit_reason)

        if trailing is not None:
            trail_price = trailing.update(bar)
            if trail_price is not None:
                return ExitResult(day_index, trail_price, ExitReason.TRAILING_STOP)

        return None

    hold_days = spec.hold_max_days
    if hold_days == 0:
        same_day = evaluate(entry_index)
        if same_day is not None:
            return same_day
        return ExitResult(entry_index, entry_bar.close, ExitReason.TIME_EXIT)

    last_index = len(prices) - 1
    for day_index in range(entry_index + 1, min(entry_index + hold_days, last_index) + 1):
        result = evaluate(day_index)
        if result is not None:
            return result

    exit_index = min(entry_index + hold_days, last_index)
    return ExitResult(exit_index, prices[exit_index].close, ExitReason.TIME_EXIT)
