"""
Completed trade records and their cost model.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from ..data.prices import PriceBar
from ..strategy.signals import Side
from ..strategy.spec import StrategySpec
from .exits import ExitReason, ExitResult, apply_slippage, entry_base_price


@dataclass(frozen=True)
class Trade:
    """A completed, fully costed position. Never mutated after creation."""
    entry_date: str
    side: Side
    entry_price: float
    exit_date: str
    exit_price: float
    exit_reason: ExitReason
    pnl_usd: float
    pnl_pct: float
    fees_usd: float
    interest_usd: float
    entry_index: int
    exit_index: int
    notional_usd: float
    quantity: float
    meta: Optional[Dict[str, Any]] = field(default=None)

    @property
    def is_winner(self) -> bool:
        """Non-negative trades count as wins."""
        return self.pnl_usd >= 0

    @property
    def days_held(self) -> int:
        return max(1, self.exit_index - self.entry_index + 1)

    def to_dict(self) -> dict:
        """Serialize trade to dictionary."""
        return {
            "entry_date": self.entry_date,
            "side": self.side.value,
            "entry_price": self.entry_price,
            "exit_date": self.exit_date,
            "exit_price": self.exit_price,
            "exit_reason": self.exit_reason.value,
            "pnl_usd": self.pnl_usd,
            "pnl_pct": self.pnl_pct,
            "fees_usd": self.fees_usd,
            "interest_usd": self.interest_usd,
            "notional_usd": self.notional_usd,
            "quantity": self.quantity,
            "days_held": self.days_held,
            "meta": self.meta,
        }


def compute_interest(
    notional: float,
    leverage: float,
    base_capital: float,
    apr: float,
    days_held: int
) -> float:
    """
    Margin interest on the borrowed part of the position.

    Zero without leverage; otherwise (notional - base_capital) accrues at
    apr / 365 per day held.
    """
    if leverage <= 1:
        return 0.0
    borrowed = max(0.0, notional - base_capital)
    return borrowed * (apr / 365) * days_held


def build_trade(
    prices: Sequence[PriceBar],
    entry_index: int,
    exit_result: ExitResult,
    side: Side,
    spec: StrategySpec,
    notional: float,
    base_capital: float,
    leverage: float,
    meta: Optional[Dict[str, Any]] = None,
    exit_reason: Optional[ExitReason] = None
) -> Trade:
    """
    Cost a simulated entry/exit pair.

    Slippage is applied to both fills, commission is charged per side and
    margin interest per day held.

    Args:
        prices: Full bar series.
        entry_index: Entry bar.
        exit_result: Output of simulate_exit.
        side: Position side.
        spec: Strategy spec (costs and entry price rule).
        notional: Position value in USD.
        base_capital: Own capital backing the position.
        leverage: Leverage used for the position.
        meta: Optional extra data carried on the trade.
        exit_reason: Overrides the resolver's reason (used to tag flips).

    Returns:
        Trade record.
    """
    entry_bar = prices[entry_index]
    exit_bar = prices[exit_result.exit_index]
    costs = spec.costs

    entry_price = apply_slippage(entry_base_price(entry_bar, spec), side, costs.slippage_bps, is_entry=True)
    exit_price = apply_slippage(exit_result.exit_price, side, costs.slippage_bps, is_entry=False)

    quantity = notional / entry_price
    if side is Side.LONG:
        gross_pnl = (exit_price - entry_price) * quantity
    else:
        gross_pnl = (entry_price - exit_price) * quantity

    fees = costs.commission_per_side_usd * 2
    days_held = max(1, exit_result.exit_index - entry_index + 1)
    interest = compute_interest(notional, leverage, base_capital, costs.margin_interest_apr, days_held)
    pnl = gross_pnl - fees - interest

    return Trade(
        entry_date=entry_bar.date,
        side=side,
        entry_price=entry_price,
        exit_date=exit_bar.date,
        exit_price=exit_price,
        exit_reason=exit_reason or exit_result.exit_reason,
        pnl_usd=pnl,
        pnl_pct=pnl / base_capital if base_capital else 0.0,
        fees_usd=fees,
        interest_usd=interest,
        entry_index=entry_index,
        exit_index=exit_result.exit_index,
        notional_usd=notional,
        quantity=quantity,
        meta=dict(meta) if meta else None,
    )
