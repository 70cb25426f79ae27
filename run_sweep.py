#!/usr/bin/env python3
"""
Parameter Sweep CLI

Runs a stop-loss x take-profit grid around a base spec and reports the best
cell by total return.

Usage:
    # 5x5 grid with default ranges on the streak-fade-3 preset
    python run_sweep.py --scenario streak-fade-3

    # Custom ranges, 8x8 grid, 4 threads, export the grid
    python run_sweep.py --spec specs/fade.yaml --sl 0.002 0.03 --tp 0 0.04 --steps 8 --jobs 4 --export
"""

import argparse
import json
import sys
from pathlib import Path

import numpy as np
from dotenv import load_dotenv

load_dotenv()

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from streaklab.backtest.sweep import ParameterSweep, SweepConfig, SweepConfigError
from streaklab.config.settings import get_settings, reload_settings
from streaklab.config.spec_file import resolve_spec
from streaklab.data.prices import PriceDataError, load_prices_csv
from streaklab.observability.logger import configure_logging
from streaklab.strategy.spec import SpecValidationError


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Sweep stop-loss and take-profit over a grid",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_sweep.py --scenario streak-fade-3
  python run_sweep.py --scenario gap-reversion --steps 10 --jobs 4
  python run_sweep.py --spec specs/fade.yaml --sl 0.002 0.03 --tp 0 0.04 --export
        """
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--spec", type=str, help="Path to a YAML or JSON base spec")
    source.add_argument(
        "--scenario",
        type=str,
        help="Preset scenario id for the base spec (default: streak-fade-3)"
    )

    parser.add_argument("--symbol", type=str, default=None, help="Symbol override")
    parser.add_argument(
        "--lookback",
        type=int,
        default=120,
        help="Lookback days for preset scenarios (default: 120)"
    )
    parser.add_argument("--prices", type=str, default=None, help="Price CSV path")
    parser.add_argument("--config", type=str, default=None, help="Path to settings YAML")

    # Grid
    parser.add_argument(
        "--sl",
        nargs=2,
        type=float,
        metavar=("MIN", "MAX"),
        default=None,
        help="Stop-loss range (default: from settings)"
    )
    parser.add_argument(
        "--tp",
        nargs=2,
        type=float,
        metavar=("MIN", "MAX"),
        default=None,
        help="Take-profit range (default: from settings)"
    )
    parser.add_argument("--steps", type=int, default=None, help="Grid points per axis, 2-10")
    parser.add_argument("--jobs", "-j", type=int, default=None, help="Parallel runs")

    # Output
    parser.add_argument(
        "--export",
        action="store_true",
        help="Export results JSON and the return grid CSV"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/sweep_results",
        help="Directory for exported files (default: data/sweep_results)"
    )

    return parser.parse_args()


def print_grid(results) -> None:
    """Print the total-return grid as a table."""
    grid = results.to_grid("total_return_pct") * 100
    header = "SL \\ TP".ljust(10) + "".join(f"{tp * 100:>9.2f}%" for tp in results.take_profits)
    print(header)
    for row, sl in enumerate(results.stop_losses):
        cells = "".join(
            f"{'n/a':>10}" if np.isnan(value) else f"{value:>9.2f}%"
            for value in grid[row]
        )
        print(f"{sl * 100:>8.2f}% " + cells)


def main():
    """Main entry point."""
    args = parse_args()

    settings = reload_settings(args.config) if args.config else get_settings()
    configure_logging(level=settings.logging.level, format_type=settings.logging.format)

    try:
        spec = resolve_spec(
            spec_path=args.spec,
            scenario_id=args.scenario or (None if args.spec else "streak-fade-3"),
            symbol=args.symbol or (None if args.spec else settings.data.default_symbol),
            lookback_days=args.lookback,
        )
        config = SweepConfig(
            stop_loss_range=tuple(args.sl or settings.sweep.stop_loss_range),
            take_profit_range=tuple(args.tp or settings.sweep.take_profit_range),
            steps=args.steps or settings.sweep.steps,
            n_jobs=args.jobs or settings.sweep.n_jobs,
            min_bars=settings.data.min_bars,
        )
    except (SpecValidationError, SweepConfigError) as e:
        print(f"Invalid sweep request: {e}")
        sys.exit(2)

    prices_path = args.prices or str(Path(settings.data.prices_dir) / f"{spec.symbol}.csv")

    print("=" * 60)
    print("PARAMETER SWEEP")
    print("=" * 60)
    print(f"  Symbol: {spec.symbol}")
    print(f"  Template: {spec.template.value}")
    print(f"  Stop loss: {config.stop_loss_range[0]:.4f} - {config.stop_loss_range[1]:.4f}")
    print(f"  Take profit: {config.take_profit_range[0]:.4f} - {config.take_profit_range[1]:.4f}")
    print(f"  Grid: {config.steps}x{config.steps} ({config.total_runs} runs)")

    try:
        prices = load_prices_csv(prices_path, lookback_days=spec.lookback_days)
        results = ParameterSweep(spec, config).run(prices)
    except PriceDataError as e:
        print(f"Price data error: {e}")
        sys.exit(1)

    print()
    print_grid(results)

    if results.best:
        best = results.best
        print("\n--- Best Cell ---")
        print(f"  Stop loss: {best.stop_loss_pct:.4f}")
        print(f"  Take profit: {best.take_profit_pct:.4f}")
        print(f"  Total return: {best.metrics.total_return_pct * 100:+.2f}%")
        print(f"  Trades: {best.metrics.trades_count}")
        print(f"  Win rate: {best.metrics.win_rate * 100:.1f}%")
        print(f"  Max drawdown: {best.metrics.max_drawdown_pct * 100:.2f}%")
    else:
        print("\nNo grid cell produced a result.")

    if args.export:
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        prefix = output_dir / f"{spec.symbol}_{spec.template.value}"

        with open(f"{prefix}_sweep.json", "w") as f:
            json.dump(results.to_dict(), f, indent=2)
        np.savetxt(f"{prefix}_grid.csv", results.to_grid(), delimiter=",", fmt="%.6f")

        print(f"\nResults exported to: {prefix}_sweep.json")
        print(f"Grid exported to: {prefix}_grid.csv")


if __name__ == "__main__":
    main()
