"""
Run-level performance metrics: equity, drawdown, streaks and trade stats.
"""

from dataclasses import asdict, dataclass
from typing import List, Sequence

import numpy as np

from .trade import Trade


@dataclass(frozen=True)
class RunMetrics:
    """Summary over a completed trade list. Ratios are fractions, not percent."""
    total_pnl_usd: float = 0.0
    total_return_pct: float = 0.0
    win_rate: float = 0.0
    trades_count: int = 0
    max_drawdown_pct: float = 0.0
    worst_losing_streak: int = 0
    max_martingale_step_reached: int = 0
    martingale_step_escalations: int = 0
    avg_trade_pct: float = 0.0
    median_trade_pct: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class EquityPoint:
    """Equity after a trade closes."""
    date: str
    equity: float
    drawdown: float
    drawdown_pct: float


class RunStats:
    """
    Folds closed trades into running equity, drawdown and streak state.

    Equity starts at 0 and is the cumulative net pnl; drawdown is measured
    from the running equity peak.
    """

    def __init__(self, base_capital: float):
        """
        Initialize the accumulator.

        Args:
            base_capital: Capital that percentages are relative to.
        """
        self.base_capital = base_capital
        self.equity = 0.0
        self.peak_equity = 0.0
        self.max_drawdown = 0.0
        self.wins = 0
        self.losing_streak = 0
        self.worst_losing_streak = 0
        self.equity_curve: List[EquityPoint] = []

    def record_trade(self, trade: Trade) -> None:
        """
        Fold one closed trade into the running state.

        Args:
            trade: The completed trade.
        """
        self.equity += trade.pnl_usd
        if self.equity > self.peak_equity:
            self.peak_equity = self.equity

        drawdown = self.peak_equity - self.equity
        if drawdown > self.max_drawdown:
            self.max_drawdown = drawdown

        if trade.pnl_usd >= 0:
            self.wins += 1
            self.losing_streak = 0
        else:
            self.losing_streak += 1
            self.worst_losing_streak = max(self.worst_losing_streak, self.losing_streak)

        self.equity_curve.append(EquityPoint(
            date=trade.exit_date,
            equity=self.equity,
            drawdown=drawdown,
            drawdown_pct=drawdown / self.base_capital if self.base_capital else 0.0,
        ))

    @property
    def max_drawdown_pct(self) -> float:
        return self.max_drawdown / self.base_capital if self.base_capital else 0.0

    def finalize(
        self,
        trades: Sequence[Trade],
        max_martingale_step_reached: int = 0,
        martingale_step_escalations: int = 0
    ) -> RunMetrics:
        """
        Build the run summary.

        Args:
            trades: Every trade folded into this accumulator, in order.
            max_martingale_step_reached: Highest martingale step of the run.
            martingale_step_escalations: Successful step increases.

        Returns:
            RunMetrics; all ratios are 0 for an empty run or zero capital.
        """
        count = len(trades)
        total_pnl = float(sum(t.pnl_usd for t in trades))
        trade_pcts = np.array([t.pnl_pct for t in trades], dtype=float)

        return RunMetrics(
            total_pnl_usd=total_pnl,
            total_return_pct=total_pnl / self.base_capital if self.base_capital else 0.0,
            win_rate=self.wins / count if count else 0.0,
            trades_count=count,
            max_drawdown_pct=self.max_drawdown_pct,
            worst_losing_streak=self.worst_losing_streak,
            max_martingale_step_reached=max_martingale_step_reached,
            martingale_step_escalations=martingale_step_escalations,
            avg_trade_pct=float(np.mean(trade_pcts)) if count else 0.0,
            median_trade_pct=float(np.median(trade_pcts)) if count else 0.0,
        )
