"""
Backtest engine: replays a strategy spec over a daily bar series.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..data.prices import PriceBar
from ..observability.logger import get_logger
from ..risk.position_sizer import MartingaleState, PositionSizer
from ..strategy.signals import Side, SignalDetector
from ..strategy.spec import SarFadeFlipSpec, StrategySpec
from .exits import ExitReason, ExitResult, simulate_exit
from .metrics import EquityPoint, RunMetrics, RunStats
from .trade import Trade, build_trade

logger = get_logger(__name__)


@dataclass
class BacktestResults:
    """Results from a backtest run."""
    spec: StrategySpec
    trades: List[Trade]
    equity_curve: List[EquityPoint]
    metrics: RunMetrics
    bars_processed: int


class BacktestEngine:
    """
    Core simulation loop.

    Scans bars from index 1. On a signal it sizes the position, resolves the
    exit, costs the trade and folds it into the run statistics, then resumes
    scanning after the exit bar, so positions never overlap. For the
    sar_fade_flip template a stop-loss exit opens up to flip_max_times
    reverse positions at the bar the previous trade exited.

    One engine run owns all of its state; separate runs can execute in
    parallel.
    """

    def __init__(self, spec: StrategySpec):
        """
        Initialize the backtest engine.

        Args:
            spec: Validated, clamped strategy spec.
        """
        self.spec = spec
        self.sizer = PositionSizer(spec)

    def run(self, prices: Sequence[PriceBar]) -> BacktestResults:
        """
        Run the backtest.

        Args:
            prices: Bars sorted ascending by date.

        Returns:
            BacktestResults with trades in execution order and run metrics.
        """
        detector = SignalDetector(self.spec, prices)
        stats = RunStats(self.sizer.base_capital)
        state = MartingaleState()
        trades: List[Trade] = []

        i = 1
        while i < len(prices):
            signal = detector.detect(i)
            if signal is None:
                i += 1
                continue

            exit_result, state = self._open_trade(prices, i, signal.side, state, stats, trades)
            last_exit = exit_result

            if (
                isinstance(self.spec, SarFadeFlipSpec)
                and exit_result.exit_reason is ExitReason.STOP_LOSS
            ):
                last_exit, state = self._run_flips(prices, exit_result, signal.side, state, stats, trades)

            i = last_exit.exit_index + 1

        metrics = stats.finalize(
            trades,
            max_martingale_step_reached=state.max_step_reached,
            martingale_step_escalations=state.escalations,
        )

        logger.info(
            "Backtest completed",
            template=self.spec.template.value,
            symbol=self.spec.symbol,
            bars=len(prices),
            trades=metrics.trades_count,
            total_pnl_usd=round(metrics.total_pnl_usd, 2),
            win_rate=round(metrics.win_rate, 4)
        )

        return BacktestResults(
            spec=self.spec,
            trades=trades,
            equity_curve=stats.equity_curve,
            metrics=metrics,
            bars_processed=len(prices),
        )

    def _open_trade(
        self,
        prices: Sequence[PriceBar],
        entry_index: int,
        side: Side,
        state: MartingaleState,
        stats: RunStats,
        trades: List[Trade],
        meta: Optional[dict] = None,
        exit_reason: Optional[ExitReason] = None
    ) -> Tuple[ExitResult, MartingaleState]:
        """Size, simulate, cost and record one position."""
        notional = self.sizer.notional(state)
        exit_result = simulate_exit(prices, entry_index, side, self.spec)
        trade = build_trade(
            prices,
            entry_index,
            exit_result,
            side,
            self.spec,
            notional,
            self.sizer.base_capital,
            self.sizer.leverage,
            meta=meta,
            exit_reason=exit_reason,
        )

        trades.append(trade)
        stats.record_trade(trade)
        state = self.sizer.record_result(state, trade.pnl_usd)

        logger.trade(
            self.spec.symbol,
            side.value,
            trade.entry_date,
            trade.exit_date,
            trade.exit_reason.value,
            trade.pnl_usd,
            notional=notional,
            martingale_step=state.step
        )

        return exit_result, state

    def _run_flips(
        self,
        prices: Sequence[PriceBar],
        stopped_exit: ExitResult,
        original_side: Side,
        state: MartingaleState,
        stats: RunStats,
        trades: List[Trade]
    ) -> Tuple[ExitResult, MartingaleState]:
        """
        Reverse into the opposite side after a stop-loss.

        Each flip enters at the bar the previous trade exited and is sized
        from the current martingale state. Stops after flip_max_times flips
        or at the first non-losing flip.

        Returns:
            The last exit reached and the updated martingale state.
        """
        last_exit = stopped_exit
        flip_side = original_side.opposite
        flip_count = 0

        while flip_count < self.spec.flip_max_times:
            flip_count += 1
            last_exit, state = self._open_trade(
                prices,
                last_exit.exit_index,
                flip_side,
                state,
                stats,
                trades,
                meta={"flip_from": original_side.value, "flip_number": flip_count},
                exit_reason=ExitReason.SAR_FLIP,
            )
            if trades[-1].pnl_usd >= 0:
                break

        return last_exit, state


def run_backtest(prices: Sequence[PriceBar], spec: StrategySpec) -> BacktestResults:
    """
    Convenience function to run one backtest.

    Args:
        prices: Bars sorted ascending by date.
        spec: Validated, clamped strategy spec.

    Returns:
        BacktestResults.
    """
    return BacktestEngine(spec).run(prices)
