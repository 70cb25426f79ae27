#!/usr/bin/env python3
"""
Backtest CLI

Replays a strategy spec (from a YAML/JSON file or a preset scenario) over
local daily price data and prints the results.

Usage:
    # Preset scenario on SPY
    python run_backtest.py --scenario streak-fade-3

    # Spec file with a different symbol and export
    python run_backtest.py --spec specs/gap_fade.yaml --symbol QQQ --export

    # List preset scenarios
    python run_backtest.py --list-scenarios
"""

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from streaklab.backtest import BacktestRunner
from streaklab.config.settings import get_settings, reload_settings
from streaklab.config.spec_file import resolve_spec
from streaklab.data.prices import PriceDataError
from streaklab.observability.logger import configure_logging
from streaklab.strategy.scenarios import SCENARIOS
from streaklab.strategy.spec import SpecValidationError


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Backtest a daily-bar streak or gap strategy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_backtest.py --scenario streak-fade-3
  python run_backtest.py --scenario gap-reversion --symbol QQQ --lookback 250
  python run_backtest.py --spec specs/sar.yaml --export --json
        """
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--spec",
        type=str,
        help="Path to a YAML or JSON strategy spec"
    )
    source.add_argument(
        "--scenario",
        type=str,
        help="Preset scenario id (default: streak-fade-3, see --list-scenarios)"
    )
    source.add_argument(
        "--list-scenarios",
        action="store_true",
        help="List preset scenarios and exit"
    )

    parser.add_argument(
        "--symbol",
        type=str,
        default=None,
        help="Symbol override (default: from spec or settings)"
    )
    parser.add_argument(
        "--lookback",
        type=int,
        default=120,
        help="Lookback days for preset scenarios (default: 120)"
    )
    parser.add_argument(
        "--prices",
        type=str,
        default=None,
        help="Price CSV path (default: <prices_dir>/<SYMBOL>.csv)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to settings YAML"
    )

    # Output
    parser.add_argument(
        "--export",
        action="store_true",
        help="Export trades, results and equity curve"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/backtest_results",
        help="Directory for exported files (default: data/backtest_results)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON instead of the report"
    )

    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()

    if args.list_scenarios:
        for scenario in SCENARIOS:
            warning = f"  [{scenario.risk_warning}]" if scenario.risk_warning else ""
            print(f"{scenario.id:<18} {scenario.name}{warning}")
            print(f"{'':<18} {scenario.description}")
        return

    settings = reload_settings(args.config) if args.config else get_settings()
    configure_logging(level=settings.logging.level, format_type=settings.logging.format)

    try:
        spec = resolve_spec(
            spec_path=args.spec,
            scenario_id=args.scenario or (None if args.spec else "streak-fade-3"),
            symbol=args.symbol or (None if args.spec else settings.data.default_symbol),
            lookback_days=args.lookback,
        )
    except SpecValidationError as e:
        print(f"Invalid strategy spec: {e}")
        sys.exit(2)

    runner = BacktestRunner(spec, prices_path=args.prices)

    try:
        runner.run()
    except PriceDataError as e:
        print(f"Price data error: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(runner.get_summary(), indent=2))
    else:
        runner.print_report()

    if args.export:
        runner.export_results(args.output_dir)


if __name__ == "__main__":
    main()
