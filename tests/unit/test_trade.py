"""
Unit tests for trade costing (fees, slippage, margin interest).
"""

import dataclasses
import pytest
import sys
import os
from datetime import date, timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from streaklab.backtest.exits import ExitReason, ExitResult
from streaklab.backtest.trade import build_trade, compute_interest
from streaklab.data.prices import PriceBar
from streaklab.strategy.signals import Side
from streaklab.strategy.spec import Costs, GapFadeSpec, StreakFadeSpec


def bars_from_closes(closes, start=date(2024, 1, 1)):
    return [
        PriceBar(date=(start + timedelta(days=i)).isoformat(), open=c, high=c, low=c, close=c)
        for i, c in enumerate(closes)
    ]


class TestInterest:
    """Tests for margin interest."""

    def test_no_interest_without_leverage(self):
        assert compute_interest(500, 1, 500, 0.12, 5) == 0.0

    def test_interest_on_borrowed_amount(self):
        interest = compute_interest(5000, 10, 500, 0.12, 2)
        assert interest == pytest.approx(4500 * 0.12 / 365 * 2)

    def test_no_negative_borrowing(self):
        assert compute_interest(400, 2, 500, 0.12, 3) == 0.0


class TestBuildTrade:
    """Tests for trade construction."""

    def test_leveraged_long_loss(self):
        bars = bars_from_closes([100, 99])
        spec = StreakFadeSpec(
            leverage=10, capital_base_usd=500,
            costs=Costs(commission_per_side_usd=1, margin_interest_apr=0.12),
        )
        trade = build_trade(
            bars, 0, ExitResult(1, 99.0, ExitReason.TIME_EXIT), Side.LONG,
            spec, notional=5000, base_capital=500, leverage=10,
        )

        interest = 4500 * 0.12 / 365 * 2
        assert trade.quantity == pytest.approx(50)
        assert trade.fees_usd == 2
        assert trade.interest_usd == pytest.approx(interest)
        assert trade.pnl_usd == pytest.approx(-50 - 2 - interest)
        assert trade.pnl_pct == pytest.approx(trade.pnl_usd / 500)
        assert trade.days_held == 2
        assert not trade.is_winner
        assert trade.entry_date == "2024-01-01"
        assert trade.exit_date == "2024-01-02"

    def test_short_profit_without_costs(self):
        bars = bars_from_closes([110, 108])
        spec = StreakFadeSpec()
        trade = build_trade(
            bars, 0, ExitResult(1, 108.0, ExitReason.TIME_EXIT), Side.SHORT,
            spec, notional=1100, base_capital=500, leverage=1,
        )
        assert trade.quantity == pytest.approx(10)
        assert trade.pnl_usd == pytest.approx(20)
        assert trade.interest_usd == 0.0
        assert trade.is_winner

    def test_slippage_on_both_fills(self):
        bars = bars_from_closes([100, 100])
        spec = StreakFadeSpec(costs=Costs(slippage_bps=10))
        trade = build_trade(
            bars, 0, ExitResult(1, 100.0, ExitReason.TIME_EXIT), Side.LONG,
            spec, notional=1000, base_capital=1000, leverage=1,
        )
        assert trade.entry_price == pytest.approx(100.1)
        assert trade.exit_price == pytest.approx(99.9)
        assert trade.pnl_usd < 0

    def test_gap_entry_uses_open(self):
        bars = [
            PriceBar("2024-01-01", 100, 100, 100, 100),
            PriceBar("2024-01-02", 103, 103.5, 101, 101.5),
        ]
        spec = GapFadeSpec(gap_threshold_pct=0.01)
        trade = build_trade(
            bars, 1, ExitResult(1, 101.5, ExitReason.TIME_EXIT), Side.SHORT,
            spec, notional=1030, base_capital=500, leverage=1,
        )
        assert trade.entry_price == 103
        assert trade.days_held == 1
        assert trade.pnl_usd == pytest.approx(15)

    def test_exit_reason_override_and_meta(self):
        bars = bars_from_closes([100, 101])
        meta = {"flip_from": "SHORT", "flip_number": 1}
        trade = build_trade(
            bars, 0, ExitResult(1, 101.0, ExitReason.TIME_EXIT), Side.LONG,
            StreakFadeSpec(), notional=500, base_capital=500, leverage=1,
            meta=meta, exit_reason=ExitReason.SAR_FLIP,
        )
        assert trade.exit_reason is ExitReason.SAR_FLIP
        assert trade.meta == meta
        assert trade.meta is not meta

    def test_trade_is_immutable(self):
        bars = bars_from_closes([100, 101])
        trade = build_trade(
            bars, 0, ExitResult(1, 101.0, ExitReason.TIME_EXIT), Side.LONG,
            StreakFadeSpec(), notional=500, base_capital=500, leverage=1,
        )
        with pytest.raises(dataclasses.FrozenInstanceError):
            trade.pnl_usd = 0

    def test_to_dict(self):
        bars = bars_from_closes([100, 101])
        trade = build_trade(
            bars, 0, ExitResult(1, 101.0, ExitReason.TIME_EXIT), Side.LONG,
            StreakFadeSpec(), notional=500, base_capital=500, leverage=1,
        )
        data = trade.to_dict()
        assert data["side"] == "LONG"
        assert data["exit_reason"] == "TIME_EXIT"
        assert data["pnl_usd"] == pytest.approx(5)
        assert data["meta"] is None
