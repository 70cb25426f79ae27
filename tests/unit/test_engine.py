"""
Unit tests for the backtest engine and run metrics.
"""

import pytest
import sys
import os
from datetime import date, timedelta

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from streaklab.backtest.engine import BacktestEngine, run_backtest
from streaklab.backtest.exits import ExitReason
from streaklab.backtest.metrics import RunMetrics
from streaklab.data.prices import PriceBar
from streaklab.strategy.signals import Side
from streaklab.strategy.spec import (
    Costs,
    GapFadeSpec,
    MartingaleLite,
    SarFadeFlipSpec,
    StaticTakeProfit,
    StreakFadeSpec,
    StreakFollowSpec,
    clamp_spec,
)


def make_bars(rows, start=date(2024, 1, 1)):
    """Build bars from (open, high, low, close) tuples."""
    return [
        PriceBar(
            date=(start + timedelta(days=i)).isoformat(),
            open=o, high=h, low=l, close=c,
        )
        for i, (o, h, l, c) in enumerate(rows)
    ]


def bars_from_closes(closes):
    return make_bars([(c, c, c, c) for c in closes])


def random_walk_bars(n=200, seed=7):
    """Daily bars with realistic open/high/low around a random walk."""
    rng = np.random.RandomState(seed)
    rows = []
    close = 100.0
    for _ in range(n):
        prev = close
        close = prev * (1 + rng.normal(0, 0.01))
        open_ = prev * (1 + rng.normal(0, 0.003))
        high = max(open_, close) * (1 + abs(rng.normal(0, 0.004)))
        low = min(open_, close) * (1 - abs(rng.normal(0, 0.004)))
        rows.append((open_, high, low, close))
    return make_bars(rows)


class TestScenarios:
    """Tests for small hand-checked runs."""

    def test_streak_fade_short_times_out(self):
        """SHORT at 110 with stop 111.1; the 108 close is inside the stop."""
        bars = bars_from_closes([100, 105, 110, 108, 95])
        spec = StreakFadeSpec(streak_length=2, stop_loss_pct=0.01, hold_max_days=1)
        results = run_backtest(bars, spec)

        trade = results.trades[0]
        assert trade.side is Side.SHORT
        assert trade.entry_price == 110
        assert trade.exit_reason is ExitReason.TIME_EXIT
        assert trade.exit_price == 108
        assert trade.entry_date == "2024-01-03"
        assert trade.exit_date == "2024-01-04"
        # 110 -> 108 -> 95 is a fresh two-day down streak entered on the last bar
        assert len(results.trades) == 2
        assert results.trades[1].side is Side.LONG
        assert results.trades[1].entry_index == 4
        assert results.metrics.win_rate == 1.0

    def test_streak_fade_short_stopped(self):
        bars = make_bars([
            (100, 100, 100, 100),
            (105, 105, 105, 105),
            (110, 110, 110, 110),
            (110, 112, 107, 108),
        ])
        spec = StreakFadeSpec(streak_length=2, stop_loss_pct=0.01)
        trade = run_backtest(bars, spec).trades[0]
        assert trade.exit_reason is ExitReason.STOP_LOSS
        assert trade.exit_price == pytest.approx(111.1)
        assert trade.pnl_usd < 0

    def test_gap_fade_short_at_open(self):
        bars = make_bars([
            (100, 100, 100, 100),
            (103, 103.2, 101, 101.5),
            (101.5, 102, 101, 101.8),
        ])
        spec = GapFadeSpec(gap_threshold_pct=0.01, exit_plan=StaticTakeProfit(0.01))
        results = run_backtest(bars, spec)

        assert len(results.trades) == 1
        trade = results.trades[0]
        assert trade.side is Side.SHORT
        assert trade.entry_price == 103
        assert trade.exit_reason is ExitReason.TAKE_PROFIT
        assert trade.entry_date == trade.exit_date

    def test_zero_trades(self):
        """A flat series yields all-zero metrics."""
        results = run_backtest(bars_from_closes([100] * 30), StreakFadeSpec())
        assert results.trades == []
        assert results.metrics == RunMetrics()
        assert results.equity_curve == []
        assert results.bars_processed == 30

    def test_empty_and_single_bar(self):
        assert run_backtest([], StreakFadeSpec()).metrics.trades_count == 0
        assert run_backtest(bars_from_closes([100]), StreakFadeSpec()).metrics.trades_count == 0


class TestSarFlip:
    """Tests for stop-and-reverse flips."""

    def rows(self):
        return [
            (100, 100, 100, 100),
            (105, 105, 105, 105),
            (110, 110, 110, 110),          # SHORT fade at 110, stop 111.1
            (111, 112, 110.5, 111.5),      # stopped; flip LONG at 111.5
        ]

    def test_single_flip_after_stop(self):
        bars = make_bars(self.rows() + [(112, 114, 111.8, 113)])
        spec = SarFadeFlipSpec(streak_length=2, stop_loss_pct=0.01, flip_max_times=1)
        trades = run_backtest(bars, spec).trades

        assert len(trades) == 2
        assert trades[0].exit_reason is ExitReason.STOP_LOSS
        flip = trades[1]
        assert flip.side is Side.LONG
        assert flip.exit_reason is ExitReason.SAR_FLIP
        assert flip.meta == {"flip_from": "SHORT", "flip_number": 1}
        assert flip.entry_index == trades[0].exit_index
        assert flip.entry_price == 111.5
        assert flip.exit_price == 113

    def test_losing_flip_chains_until_limit(self):
        bars = make_bars(self.rows() + [
            (111, 111.6, 110, 110.2),      # flip 1 LONG stopped at 110.385
            (111, 112, 110.5, 111.8),      # flip 2 LONG from 110.2 wins
        ])
        spec = SarFadeFlipSpec(streak_length=2, stop_loss_pct=0.01, flip_max_times=2)
        trades = run_backtest(bars, spec).trades

        assert len(trades) == 3
        assert [t.side for t in trades] == [Side.SHORT, Side.LONG, Side.LONG]
        assert [t.meta["flip_number"] for t in trades[1:]] == [1, 2]
        assert trades[1].pnl_usd < 0
        assert trades[2].pnl_usd > 0
        assert trades[2].entry_index == trades[1].exit_index

    def test_flip_count_bounded(self):
        bars = make_bars(self.rows() + [
            (111, 111.6, 110, 110.2),
            (111, 112, 110.5, 111.8),
        ])
        spec = SarFadeFlipSpec(streak_length=2, stop_loss_pct=0.01, flip_max_times=1)
        trades = run_backtest(bars, spec).trades
        assert sum(1 for t in trades if t.exit_reason is ExitReason.SAR_FLIP) == 1

    def test_no_flip_when_disabled(self):
        bars = make_bars(self.rows() + [(112, 114, 111.8, 113)])
        spec = SarFadeFlipSpec(streak_length=2, stop_loss_pct=0.01, flip_max_times=0)
        trades = run_backtest(bars, spec).trades
        assert trades[0].exit_reason is ExitReason.STOP_LOSS
        assert all(t.exit_reason is not ExitReason.SAR_FLIP for t in trades)

    def test_plain_fade_never_flips(self):
        bars = make_bars(self.rows() + [(112, 114, 111.8, 113)])
        spec = StreakFadeSpec(streak_length=2, stop_loss_pct=0.01)
        trades = run_backtest(bars, spec).trades
        assert all(t.exit_reason is not ExitReason.SAR_FLIP for t in trades)


class TestRunProperties:
    """Property checks over a longer random walk."""

    @pytest.fixture
    def bars(self):
        return random_walk_bars()

    def specs(self):
        costs = Costs(commission_per_side_usd=1, slippage_bps=2, margin_interest_apr=0.12)
        return [
            StreakFadeSpec(streak_length=2, stop_loss_pct=0.005, hold_max_days=3, leverage=5, costs=costs),
            StreakFollowSpec(streak_length=2, stop_loss_pct=0.01, exit_plan=StaticTakeProfit(0.01)),
            SarFadeFlipSpec(streak_length=2, stop_loss_pct=0.003, flip_max_times=3, costs=costs),
            GapFadeSpec(gap_threshold_pct=0.003, stop_loss_pct=0.005, costs=costs),
        ]

    def test_deterministic(self, bars):
        for spec in self.specs():
            first = BacktestEngine(spec).run(bars)
            second = BacktestEngine(spec).run(bars)
            assert first.trades == second.trades
            assert first.metrics == second.metrics

    def test_positions_never_overlap(self, bars):
        for spec in self.specs():
            trades = run_backtest(bars, spec).trades
            assert trades
            for prev, trade in zip(trades, trades[1:]):
                if trade.meta is None:
                    assert trade.entry_index > prev.exit_index
                else:
                    assert trade.entry_index == prev.exit_index

    def test_drawdown_matches_prefix_maximum(self, bars):
        for spec in self.specs():
            results = run_backtest(bars, spec)
            equity = 0.0
            peak = 0.0
            worst = 0.0
            running = []
            for trade in results.trades:
                equity += trade.pnl_usd
                peak = max(peak, equity)
                worst = max(worst, peak - equity)
                running.append(worst / spec.capital_base_usd)

            assert results.metrics.max_drawdown_pct == pytest.approx(running[-1])
            assert running == sorted(running)
            curve_max = max(p.drawdown_pct for p in results.equity_curve)
            assert curve_max == pytest.approx(results.metrics.max_drawdown_pct)

    def test_metrics_consistent_with_trades(self, bars):
        spec = self.specs()[0]
        results = run_backtest(bars, spec)
        pcts = [t.pnl_pct for t in results.trades]
        total = sum(t.pnl_usd for t in results.trades)
        wins = sum(1 for t in results.trades if t.pnl_usd >= 0)

        assert results.metrics.trades_count == len(results.trades)
        assert results.metrics.total_pnl_usd == pytest.approx(total)
        assert results.metrics.total_return_pct == pytest.approx(total / spec.capital_base_usd)
        assert results.metrics.win_rate == pytest.approx(wins / len(results.trades))
        assert results.metrics.avg_trade_pct == pytest.approx(np.mean(pcts))
        assert results.metrics.median_trade_pct == pytest.approx(np.median(pcts))

    def test_martingale_caps_hold(self, bars):
        martingale = MartingaleLite(
            base_capital_usd=100, leverage=5, max_steps=5, step_multiplier=2,
            max_exposure_usd=1500, max_daily_loss_usd=50,
        )
        spec = clamp_spec(StreakFadeSpec(
            streak_length=2, stop_loss_pct=0.02, hold_max_days=2,
            capital_base_usd=100, leverage=5, martingale_lite=martingale,
        ))
        results = run_backtest(bars, spec)

        assert results.trades
        for trade in results.trades:
            assert trade.notional_usd * spec.stop_loss_pct <= martingale.max_daily_loss_usd + 1e-9
            assert trade.notional_usd <= martingale.max_exposure_usd + 1e-9
        assert results.metrics.max_martingale_step_reached <= martingale.max_steps

    def test_martingale_steps_reported(self):
        """Two stopped longs escalate twice; the third trade uses step 2 size."""
        martingale = MartingaleLite(
            base_capital_usd=100, leverage=2, max_steps=3, step_multiplier=2,
            max_exposure_usd=2000, max_daily_loss_usd=100,
        )
        spec = StreakFadeSpec(
            streak_length=2, stop_loss_pct=0.01,
            capital_base_usd=100, leverage=2, martingale_lite=martingale,
        )
        bars = make_bars([
            (100, 100, 100, 100),
            (99, 99, 99, 99),
            (98, 98, 98, 98),          # LONG fade at 98
            (97, 97, 96, 96),          # stopped at 97.02
            (95, 95, 95, 95),          # down streak 2 -> LONG at 95
            (94, 94, 93, 93),          # stopped at 94.05
            (92, 92, 92, 92),          # LONG at 92
            (93, 94, 92.5, 93.5),      # time exit, winner
        ])
        results = run_backtest(bars, spec)

        assert [t.notional_usd for t in results.trades] == [200, 400, 800]
        assert results.metrics.martingale_step_escalations == 2
        assert results.metrics.max_martingale_step_reached == 2
        assert results.metrics.worst_losing_streak == 2
