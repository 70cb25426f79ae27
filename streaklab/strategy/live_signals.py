"""
Live signal scanner: checks today's bar against every preset scenario.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from ..config.settings import get_settings
from ..data.prices import PriceBar, tail
from ..observability.logger import get_logger
from .scenarios import SCENARIOS, ScenarioDefinition
from .signals import Signal, check_signal_today
from .spec import SpecValidationError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScanResult:
    """A scenario that fires on the latest bar of a symbol."""
    scenario_id: str
    scenario_name: str
    symbol: str
    signal: Signal
    date: str

    def to_dict(self) -> dict:
        return {
            "scenario_id": self.scenario_id,
            "scenario_name": self.scenario_name,
            "symbol": self.symbol,
            "date": self.date,
            "side": self.signal.side.value,
            "reason": self.signal.reason,
            "entry_price": self.signal.entry_price,
            "template": self.signal.template,
        }


@dataclass
class ScanSummary:
    """Outcome of one scan across symbols and scenarios."""
    results: List[ScanResult]
    scanned_symbols: int
    scanned_scenarios: int
    timestamp: str


class SignalScanner:
    """
    Scans recent bars of several symbols for entries fired today.

    Symbols with fewer than min_bars bars are skipped. Scenarios whose
    values fail validation are logged and skipped; they never abort the scan.
    """

    def __init__(
        self,
        scenarios: Optional[Sequence[ScenarioDefinition]] = None,
        lookback_days: Optional[int] = None,
        min_bars: Optional[int] = None
    ):
        """
        Initialize the scanner.

        Args:
            scenarios: Scenarios to check (defaults to every preset).
            lookback_days: Recent bars considered per symbol.
            min_bars: Minimum bars for a symbol to be scanned.
        """
        settings = get_settings()
        self.scenarios = list(scenarios) if scenarios is not None else list(SCENARIOS)
        self.lookback_days = lookback_days or settings.signals.lookback_days
        self.min_bars = min_bars if min_bars is not None else settings.signals.min_bars

    def scan_symbol(self, symbol: str, prices: Sequence[PriceBar]) -> List[ScanResult]:
        """
        Check every scenario against the latest bar of one symbol.

        Args:
            symbol: Instrument symbol.
            prices: Bars for the symbol, oldest first.

        Returns:
            Results for the scenarios that fire.
        """
        bars = tail(prices, self.lookback_days)
        if len(bars) < self.min_bars:
            logger.debug("Skipping symbol with too few bars", symbol=symbol, bars=len(bars))
            return []

        results: List[ScanResult] = []
        for scenario in self.scenarios:
            try:
                spec = scenario.build_spec(scenario.default_values, self.lookback_days, symbol)
            except SpecValidationError as e:
                logger.warning(
                    f"Skipping invalid scenario {scenario.id}: {e}",
                    scenario=scenario.id,
                    symbol=symbol
                )
                continue

            signal = check_signal_today(bars, spec, min_bars=self.min_bars)
            if signal:
                results.append(ScanResult(
                    scenario_id=scenario.id,
                    scenario_name=scenario.name,
                    symbol=symbol,
                    signal=signal,
                    date=bars[-1].date,
                ))

        return results

    def scan(self, prices_by_symbol: Dict[str, Sequence[PriceBar]]) -> ScanSummary:
        """
        Scan several symbols.

        Args:
            prices_by_symbol: Bars keyed by symbol.

        Returns:
            ScanSummary with all fired signals.
        """
        results: List[ScanResult] = []
        for symbol, prices in prices_by_symbol.items():
            results.extend(self.scan_symbol(symbol, prices))

        logger.info(
            "Signal scan completed",
            symbols=len(prices_by_symbol),
            scenarios=len(self.scenarios),
            signals=len(results)
        )

        return ScanSummary(
            results=results,
            scanned_symbols=len(prices_by_symbol),
            scanned_scenarios=len(self.scenarios),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
