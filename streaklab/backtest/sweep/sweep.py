"""
Stop-loss x take-profit parameter sweep driven by an Optuna grid study.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import optuna

from ...data.prices import PriceBar, PriceDataError
from ...observability.logger import get_logger
from ...strategy.spec import SpecValidationError, StrategySpec, clamp_spec, make_exit_plan
from ..engine import BacktestEngine
from ..metrics import RunMetrics

from .config import SweepConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Metrics for one grid cell."""
    stop_loss_pct: float
    take_profit_pct: float
    metrics: RunMetrics

    def to_dict(self) -> dict:
        return {
            "stop_loss_pct": self.stop_loss_pct,
            "take_profit_pct": self.take_profit_pct,
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class SweepResults:
    """Every completed cell plus the best one."""
    results: List[SweepResult]
    best: Optional[SweepResult]
    stop_losses: List[float]
    take_profits: List[float]
    symbol: str
    template: str

    def to_grid(self, metric: str = "total_return_pct") -> np.ndarray:
        """
        Metric matrix for heatmaps.

        Rows follow stop_losses and columns take_profits; cells that failed
        are NaN.
        """
        grid = np.full((len(self.stop_losses), len(self.take_profits)), np.nan)
        for result in self.results:
            row = self.stop_losses.index(result.stop_loss_pct)
            col = self.take_profits.index(result.take_profit_pct)
            grid[row, col] = getattr(result.metrics, metric)
        return grid

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "template": self.template,
            "grid_size": len(self.stop_losses),
            "total_runs": len(self.results),
            "results": [r.to_dict() for r in self.results],
            "best_result": self.best.to_dict() if self.best else None,
        }


class ParameterSweep:
    """
    Runs one backtest per (stop_loss_pct, take_profit_pct) cell.

    The grid is explored by an Optuna study with a GridSampler so n_jobs can
    spread cells across threads. Each cell runs its own engine. A cell whose
    parameters fail validation is logged and skipped.
    """

    def __init__(self, base_spec: StrategySpec, config: SweepConfig):
        """
        Initialize the sweep.

        Args:
            base_spec: Validated spec whose other fields stay fixed.
            config: Grid ranges, size and parallelism.
        """
        self.base_spec = clamp_spec(base_spec)
        self.config = config
        self.study: Optional[optuna.Study] = None
        self.log = logger.bind(
            symbol=self.base_spec.symbol,
            template=self.base_spec.template.value
        )

        self._lock = threading.Lock()
        self._results: Dict[Tuple[int, int], SweepResult] = {}
        self._skipped: Set[Tuple[int, int]] = set()

    def _cell_spec(self, stop_loss_pct: float, take_profit_pct: float) -> StrategySpec:
        exit_plan = make_exit_plan(
            take_profit_pct if take_profit_pct > 0 else None,
            self.base_spec.trailing_stop_pct,
        )
        spec = self.base_spec.with_overrides(stop_loss_pct=stop_loss_pct, exit_plan=exit_plan)
        return clamp_spec(spec)

    def _run_cell(
        self,
        prices: Sequence[PriceBar],
        row: int,
        col: int
    ) -> Optional[SweepResult]:
        stop_loss_pct = self.config.stop_losses[row]
        take_profit_pct = self.config.take_profits[col]

        try:
            spec = self._cell_spec(stop_loss_pct, take_profit_pct)
        except SpecValidationError as e:
            self.log.warning(
                f"Sweep cell skipped: {e}",
                stop_loss_pct=stop_loss_pct,
                take_profit_pct=take_profit_pct
            )
            with self._lock:
                self._skipped.add((row, col))
            return None

        results = BacktestEngine(spec).run(prices)
        result = SweepResult(
            stop_loss_pct=stop_loss_pct,
            take_profit_pct=take_profit_pct,
            metrics=results.metrics,
        )

        with self._lock:
            self._results[(row, col)] = result
        return result

    def _objective(self, trial: optuna.Trial, prices: Sequence[PriceBar]) -> float:
        """
        Objective function for the grid study.

        Args:
            trial: Optuna trial object.
            prices: Bars shared read-only by every trial.

        Returns:
            Total return of the cell.
        """
        row = trial.suggest_categorical("stop_loss_idx", list(range(self.config.steps)))
        col = trial.suggest_categorical("take_profit_idx", list(range(self.config.steps)))

        result = self._run_cell(prices, row, col)
        if result is None:
            raise optuna.TrialPruned()

        trial.set_user_attr("trades", result.metrics.trades_count)
        trial.set_user_attr("win_rate", result.metrics.win_rate)
        return result.metrics.total_return_pct

    def run(self, prices: Sequence[PriceBar]) -> SweepResults:
        """
        Run every grid cell.

        Args:
            prices: Bars sorted ascending by date.

        Returns:
            SweepResults in grid order with the best cell by total return.

        Raises:
            PriceDataError: If fewer than min_bars bars are given.
        """
        if len(prices) < self.config.min_bars:
            raise PriceDataError(
                f"Not enough price data: need {self.config.min_bars} bars, got {len(prices)}"
            )

        self._results = {}
        self._skipped = set()
        indices = list(range(self.config.steps))
        search_space = {"stop_loss_idx": indices, "take_profit_idx": indices}

        optuna.logging.set_verbosity(optuna.logging.WARNING)
        self.study = optuna.create_study(
            direction="maximize",
            sampler=optuna.samplers.GridSampler(search_space),
        )

        self.log.info(
            "Starting parameter sweep",
            grid=f"{self.config.steps}x{self.config.steps}",
            n_jobs=self.config.n_jobs
        )

        self.study.optimize(
            lambda trial: self._objective(trial, prices),
            n_trials=self.config.total_runs,
            n_jobs=self.config.n_jobs,
        )

        # Parallel grid sampling can repeat a cell and leave another unvisited
        for row in indices:
            for col in indices:
                if (row, col) not in self._results and (row, col) not in self._skipped:
                    self._run_cell(prices, row, col)

        ordered = [self._results[key] for key in sorted(self._results)]

        best: Optional[SweepResult] = None
        for result in ordered:
            if best is None or result.metrics.total_return_pct > best.metrics.total_return_pct:
                best = result

        self.log.info(
            "Sweep completed",
            total_runs=len(ordered),
            best_stop_loss_pct=best.stop_loss_pct if best else None,
            best_take_profit_pct=best.take_profit_pct if best else None,
            best_return_pct=best.metrics.total_return_pct if best else None
        )

        return SweepResults(
            results=ordered,
            best=best,
            stop_losses=self.config.stop_losses,
            take_profits=self.config.take_profits,
            symbol=self.base_spec.symbol,
            template=self.base_spec.template.value,
        )


def run_sweep(
    prices: Sequence[PriceBar],
    base_spec: StrategySpec,
    config: Optional[SweepConfig] = None
) -> SweepResults:
    """Convenience function to sweep with default or given ranges."""
    return ParameterSweep(base_spec, config or SweepConfig()).run(prices)
