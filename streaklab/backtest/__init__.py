"""
Backtesting framework for streaklab.

Replays a strategy spec over daily bars and measures the result.

Components:
- simulate_exit / ExitResult: Exit resolution for one position
- Trade / build_trade: Costed trade records
- RunStats / RunMetrics: Equity, drawdown and trade statistics
- BacktestEngine: Core simulation loop
- ResultsReporter: Generates reports and exports
- BacktestRunner: Orchestrates the complete backtest process

Usage:
    from streaklab.backtest import BacktestRunner
    from streaklab.strategy.spec import StreakFadeSpec

    runner = BacktestRunner(StreakFadeSpec(symbol="SPY", leverage=5))
    results = runner.run()
    runner.print_report()
    runner.export_results()
"""

from .exits import ExitReason, ExitResult, apply_slippage, simulate_exit
from .trade import Trade, build_trade, compute_interest
from .metrics import EquityPoint, RunMetrics, RunStats
from .engine import BacktestEngine, BacktestResults, run_backtest
from .reporter import ResultsReporter
from .runner import BacktestRunner

__all__ = [
    # Exits
    "ExitReason",
    "ExitResult",
    "apply_slippage",
    "simulate_exit",

    # Trades
    "Trade",
    "build_trade",
    "compute_interest",

    # Metrics
    "EquityPoint",
    "RunMetrics",
    "RunStats",

    # Engine
    "BacktestEngine",
    "BacktestResults",
    "run_backtest",

    # Reporter
    "ResultsReporter",

    # Runner
    "BacktestRunner",
]
