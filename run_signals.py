#!/usr/bin/env python3
"""
Live Signal Scanner CLI

Checks the latest bar of each symbol against every preset scenario and
lists the entries that fire today.

Usage:
    # Scan every symbol with a CSV in the prices directory
    python run_signals.py

    # Scan selected symbols as JSON
    python run_signals.py --symbols SPY QQQ --json
"""

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from streaklab.config.settings import get_settings, reload_settings
from streaklab.data.prices import PriceDataError, available_symbols, load_prices_csv
from streaklab.observability.logger import configure_logging, get_logger
from streaklab.strategy.live_signals import SignalScanner

logger = get_logger(__name__)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Scan today's bar for preset scenario signals"
    )
    parser.add_argument(
        "--symbols",
        nargs="+",
        default=None,
        help="Symbols to scan (default: every CSV in the prices directory)"
    )
    parser.add_argument("--prices-dir", type=str, default=None, help="Price CSV directory")
    parser.add_argument("--config", type=str, default=None, help="Path to settings YAML")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()

    settings = reload_settings(args.config) if args.config else get_settings()
    configure_logging(level=settings.logging.level, format_type=settings.logging.format)

    prices_dir = args.prices_dir or settings.data.prices_dir
    symbols = args.symbols or available_symbols(prices_dir)
    if not symbols:
        print(f"No symbols available in {prices_dir}")
        sys.exit(1)

    lookback_days = settings.signals.lookback_days
    prices_by_symbol = {}
    for symbol in symbols:
        try:
            prices_by_symbol[symbol] = load_prices_csv(
                str(Path(prices_dir) / f"{symbol}.csv"), lookback_days=lookback_days
            )
        except PriceDataError as e:
            logger.warning(f"Skipping {symbol}: {e}", symbol=symbol)

    summary = SignalScanner(lookback_days=lookback_days).scan(prices_by_symbol)

    if args.json:
        print(json.dumps({
            "signals": [r.to_dict() for r in summary.results],
            "scanned_symbols": summary.scanned_symbols,
            "scanned_scenarios": summary.scanned_scenarios,
            "timestamp": summary.timestamp,
        }, indent=2))
        return

    print("=" * 80)
    print(f"{'SIGNALS FOR TODAY':^80}")
    print("=" * 80)
    print(f"Scanned {summary.scanned_symbols} symbols x {summary.scanned_scenarios} scenarios")
    print()

    if not summary.results:
        print("No signals.")
        return

    for result in summary.results:
        print(
            f"{result.date}  {result.symbol:<8} {result.signal.side.value:<6} "
            f"@ {result.signal.entry_price:<10.2f} {result.scenario_name}"
        )
        print(f"{'':<20}{result.signal.reason}")


if __name__ == "__main__":
    main()
