"""
Results reporter for backtest output and export.
"""

import csv
import json
from collections import Counter
from pathlib import Path

from .engine import BacktestResults

WIDTH = 80


def _section(title: str) -> None:
    print()
    print("-" * WIDTH)
    print(f"{title:^{WIDTH}}")
    print("-" * WIDTH)


class ResultsReporter:
    """
    Generates reports and exports for backtest results.

    Features:
    - Console summary output
    - Exit reason breakdown
    - CSV/JSON trade export and equity curve CSV
    """

    def __init__(self, results: BacktestResults):
        """
        Initialize the reporter.

        Args:
            results: BacktestResults from the engine.
        """
        self.results = results

    def print_summary(self) -> None:
        """Print a summary to console."""
        spec = self.results.spec
        metrics = self.results.metrics
        trades = self.results.trades
        title = f"BACKTEST RESULTS: {spec.symbol} {spec.template.value}"

        print("=" * WIDTH)
        print(f"{title:^{WIDTH}}")
        print("=" * WIDTH)

        if trades:
            print(f"Period: {trades[0].entry_date} to {trades[-1].exit_date}")
        print(f"Bars processed: {self.results.bars_processed}")
        print(f"Capital base: ${spec.capital_base_usd:,.2f}  Leverage: {spec.leverage:g}x")

        _section("PERFORMANCE SUMMARY")

        print(f"{'Total Trades:':<30} {metrics.trades_count}")
        print(f"{'Win Rate:':<30} {metrics.win_rate * 100:.1f}%")
        print(f"{'Net P&L:':<30} ${metrics.total_pnl_usd:,.2f} ({metrics.total_return_pct * 100:+.2f}%)")
        print(f"{'Avg Trade:':<30} {metrics.avg_trade_pct * 100:+.3f}%")
        print(f"{'Median Trade:':<30} {metrics.median_trade_pct * 100:+.3f}%")
        print(f"{'Total Fees:':<30} ${sum(t.fees_usd for t in trades):,.2f}")
        print(f"{'Total Interest:':<30} ${sum(t.interest_usd for t in trades):,.2f}")

        _section("RISK METRICS")

        print(f"{'Max Drawdown:':<30} {metrics.max_drawdown_pct * 100:.2f}% of capital")
        print(f"{'Worst Losing Streak:':<30} {metrics.worst_losing_streak}")

        if spec.martingale_lite is not None:
            _section("MARTINGALE STATISTICS")
            print(f"{'Max Step Reached:':<30} {metrics.max_martingale_step_reached}")
            print(f"{'Step Escalations:':<30} {metrics.martingale_step_escalations}")

        breakdown = self.get_exit_breakdown()
        if breakdown:
            _section("EXIT REASONS")
            for reason, count in breakdown.items():
                print(f"{reason + ':':<30} {count}")

        print("=" * WIDTH)

    def get_exit_breakdown(self) -> dict:
        """Count trades per exit reason."""
        counts = Counter(t.exit_reason.value for t in self.results.trades)
        return dict(sorted(counts.items()))

    def export_trades_csv(self, filepath: str) -> None:
        """
        Export trades to CSV file.

        Args:
            filepath: Output file path.
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        fieldnames = [
            "entry_date", "side", "entry_price", "exit_date", "exit_price",
            "exit_reason", "pnl_usd", "pnl_pct", "fees_usd", "interest_usd",
            "notional_usd", "quantity", "days_held", "meta",
        ]

        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for trade in self.results.trades:
                row = trade.to_dict()
                row["meta"] = json.dumps(row["meta"]) if row["meta"] else ""
                writer.writerow(row)

        print(f"Trades exported to: {path}")

    def export_trades_json(self, filepath: str) -> None:
        """
        Export full results to JSON file.

        Args:
            filepath: Output file path.
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "spec": self.results.spec.to_dict(),
            "metrics": self.results.metrics.to_dict(),
            "trades": [t.to_dict() for t in self.results.trades],
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)

        print(f"Results exported to: {path}")

    def export_equity_curve_csv(self, filepath: str) -> None:
        """
        Export equity curve to CSV file.

        Args:
            filepath: Output file path.
        """
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["date", "equity", "drawdown", "drawdown_pct"])
            for point in self.results.equity_curve:
                writer.writerow([
                    point.date,
                    f"{point.equity:.6f}",
                    f"{point.drawdown:.6f}",
                    f"{point.drawdown_pct:.6f}",
                ])

        print(f"Equity curve exported to: {path}")

    def get_summary_dict(self) -> dict:
        """
        Get summary as dictionary.

        Returns:
            Dictionary with spec, metrics and exit breakdown.
        """
        return {
            "symbol": self.results.spec.symbol,
            "template": self.results.spec.template.value,
            "bars_processed": self.results.bars_processed,
            "metrics": self.results.metrics.to_dict(),
            "exit_reasons": self.get_exit_breakdown(),
        }
