"""
Runs a single spec over one symbol's price history.
"""

from pathlib import Path
from typing import List, Optional, Sequence

from ..config.settings import get_settings
from ..data.prices import PriceBar, PriceDataError, load_prices_csv, tail
from ..observability.logger import get_logger
from ..strategy.spec import StrategySpec, clamp_spec

from .engine import BacktestEngine, BacktestResults
from .reporter import ResultsReporter

logger = get_logger(__name__)


class BacktestRunner:
    """
    Loads a symbol's bars, runs one spec over them, and reports.

    Report and export methods need a completed run().
    """

    def __init__(
        self,
        spec: StrategySpec,
        prices_path: Optional[str] = None,
        min_bars: Optional[int] = None
    ):
        """
        Initialize the backtest runner.

        Args:
            spec: Validated strategy spec (clamped here before use).
            prices_path: CSV file; defaults to <prices_dir>/<symbol>.csv.
            min_bars: Minimum bars required to run.
        """
        settings = get_settings()
        self.spec = clamp_spec(spec)
        self.prices_path = prices_path or str(
            Path(settings.data.prices_dir) / f"{self.spec.symbol}.csv"
        )
        self.min_bars = min_bars if min_bars is not None else settings.data.min_bars
        self.results: Optional[BacktestResults] = None
        self.log = logger.bind(symbol=self.spec.symbol, template=self.spec.template.value)

    def load_prices(self) -> List[PriceBar]:
        """Load the most recent lookback_days bars for the spec's symbol."""
        return load_prices_csv(self.prices_path, lookback_days=self.spec.lookback_days)

    def run(self, prices: Optional[Sequence[PriceBar]] = None) -> BacktestResults:
        """
        Run the complete backtest.

        Args:
            prices: Pre-loaded bars; loaded from prices_path when omitted.

        Returns:
            BacktestResults with all metrics and trades.

        Raises:
            PriceDataError: If fewer than min_bars bars are available.
        """
        if prices is None:
            bars = self.load_prices()
        else:
            bars = tail(prices, self.spec.lookback_days)

        if len(bars) < self.min_bars:
            raise PriceDataError(
                f"Not enough price data: need {self.min_bars} bars, got {len(bars)}"
            )

        self.log.info(
            "Starting backtest",
            start=bars[0].date,
            end=bars[-1].date,
            bars=len(bars)
        )

        self.results = BacktestEngine(self.spec).run(bars)
        return self.results

    def _reporter(self) -> ResultsReporter:
        if self.results is None:
            raise ValueError("No results available. Run backtest first.")
        return ResultsReporter(self.results)

    def print_report(self) -> None:
        """Print the backtest report to console."""
        self._reporter().print_summary()

    def export_results(self, output_dir: str = "data/backtest_results") -> None:
        """
        Export trades, full results and equity curve to files.

        Args:
            output_dir: Directory for output files.
        """
        reporter = self._reporter()
        prefix = f"{output_dir}/{self.spec.symbol}_{self.spec.template.value}"

        reporter.export_trades_csv(f"{prefix}_trades.csv")
        reporter.export_trades_json(f"{prefix}_results.json")
        reporter.export_equity_curve_csv(f"{prefix}_equity.csv")

    def get_summary(self) -> dict:
        """
        Get backtest summary as dictionary.

        Returns:
            Summary dictionary.
        """
        return self._reporter().get_summary_dict()
