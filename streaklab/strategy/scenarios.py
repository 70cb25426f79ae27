"""
Preset scenarios: named parameter sets that build ready-to-run specs.

Each scenario carries flat default values (the shape a form or a YAML file
would provide) and turns them into a validated, clamped spec.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .spec import (
    Costs,
    Direction,
    GapFadeSpec,
    MartingaleLite,
    RegimeFilter,
    RegimeMode,
    SarFadeFlipSpec,
    SpecValidationError,
    StrategySpec,
    StreakFadeSpec,
    StreakFollowSpec,
    clamp_spec,
    make_exit_plan,
)

Values = Mapping[str, Any]


BASE_DEFAULTS: Dict[str, Any] = {
    "streak_length": 3,
    "stop_loss_pct": 0.005,
    "take_profit_pct": 0.01,
    "trailing_stop_pct": 0,
    "hold_max_days": 1,
    "leverage": 5,
    "capital_base_usd": 500,
    "commission_per_side_usd": 1,
    "slippage_bps": 2,
    "margin_interest_apr": 0.12,
    "gap_threshold_pct": 0.007,
    "flip_max_times": 1,
    "use_regime_filter": False,
    "martingale_base_capital_usd": 500,
    "martingale_leverage": 10,
    "martingale_max_steps": 3,
    "martingale_step_multiplier": 2,
    "martingale_max_exposure_usd": 5000,
    "martingale_max_daily_loss_usd": 150,
}


def optional_pct(value: Any) -> Optional[float]:
    """Treat missing, non-numeric and non-positive percentages as absent."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value <= 0:
        return None
    return value


def _require(values: Values, key: str) -> Any:
    if key not in values:
        raise SpecValidationError(f"{key} is required")
    return values[key]


def _costs(values: Values) -> Costs:
    return Costs(
        commission_per_side_usd=_require(values, "commission_per_side_usd"),
        slippage_bps=_require(values, "slippage_bps"),
        margin_interest_apr=_require(values, "margin_interest_apr"),
    )


def _exit_plan(values: Values):
    trailing = optional_pct(values.get("trailing_stop_pct"))
    if trailing is not None:
        # Form values below the minimum trail are raised to it, not rejected
        trailing = max(0.001, trailing)
    return make_exit_plan(optional_pct(values.get("take_profit_pct")), trailing)


def _streak_kwargs(values: Values, symbol: str, lookback_days: int) -> Dict[str, Any]:
    return {
        "symbol": symbol,
        "lookback_days": lookback_days,
        "streak_length": _require(values, "streak_length"),
        "stop_loss_pct": _require(values, "stop_loss_pct"),
        "exit_plan": _exit_plan(values),
        "hold_max_days": _require(values, "hold_max_days"),
        "leverage": _require(values, "leverage"),
        "capital_base_usd": _require(values, "capital_base_usd"),
        "costs": _costs(values),
    }


def _build_streak_fade(values: Values, lookback_days: int, symbol: str) -> StrategySpec:
    return StreakFadeSpec(**_streak_kwargs(values, symbol, lookback_days))


def _build_streak_follow(values: Values, lookback_days: int, symbol: str) -> StrategySpec:
    return StreakFollowSpec(
        direction=Direction.FOLLOW,
        **_streak_kwargs(values, symbol, lookback_days),
    )


def _build_gap_fade(values: Values, lookback_days: int, symbol: str) -> StrategySpec:
    return GapFadeSpec(
        symbol=symbol,
        lookback_days=lookback_days,
        gap_threshold_pct=_require(values, "gap_threshold_pct"),
        stop_loss_pct=_require(values, "stop_loss_pct"),
        exit_plan=_exit_plan(values),
        hold_max_days=0,
        leverage=_require(values, "leverage"),
        capital_base_usd=_require(values, "capital_base_usd"),
        costs=_costs(values),
    )


def _build_sar_fade_flip(values: Values, lookback_days: int, symbol: str) -> StrategySpec:
    return SarFadeFlipSpec(
        flip_max_times=values.get("flip_max_times", 1),
        **_streak_kwargs(values, symbol, lookback_days),
    )


def _build_martingale(values: Values, lookback_days: int, symbol: str) -> StrategySpec:
    martingale = MartingaleLite(
        base_capital_usd=_require(values, "martingale_base_capital_usd"),
        leverage=_require(values, "martingale_leverage"),
        max_steps=_require(values, "martingale_max_steps"),
        step_multiplier=_require(values, "martingale_step_multiplier"),
        max_exposure_usd=_require(values, "martingale_max_exposure_usd"),
        max_daily_loss_usd=_require(values, "martingale_max_daily_loss_usd"),
    )
    kwargs = _streak_kwargs(values, symbol, lookback_days)
    kwargs["leverage"] = martingale.leverage
    kwargs["capital_base_usd"] = martingale.base_capital_usd
    return StreakFadeSpec(martingale_lite=martingale, **kwargs)


def _build_regime_filter(values: Values, lookback_days: int, symbol: str) -> StrategySpec:
    regime = None
    if values.get("use_regime_filter"):
        regime = RegimeFilter(length=200, mode=RegimeMode.PRICE_NEAR_MA)
    return StreakFadeSpec(
        regime_filter=regime,
        **_streak_kwargs(values, symbol, lookback_days),
    )


@dataclass(frozen=True)
class ScenarioDefinition:
    """A named preset and the builder that turns its values into a spec."""
    id: str
    name: str
    description: str
    default_values: Dict[str, Any]
    builder: Callable[[Values, int, str], StrategySpec]
    risk_warning: Optional[str] = None

    def build_spec(
        self,
        values: Optional[Values] = None,
        lookback_days: int = 120,
        symbol: str = "SPY"
    ) -> StrategySpec:
        """
        Build a clamped spec from scenario values.

        Args:
            values: Overrides merged on top of default_values.
            lookback_days: History window for the spec.
            symbol: Instrument symbol.

        Returns:
            Validated, clamped spec.

        Raises:
            SpecValidationError: If the merged values are out of range.
        """
        merged = dict(self.default_values)
        if values:
            merged.update(values)
        return clamp_spec(self.builder(merged, lookback_days, symbol))


SCENARIOS: List[ScenarioDefinition] = [
    ScenarioDefinition(
        id="streak-fade-3",
        name="Streak Fade (3)",
        description="Fade 3-day streaks. Contrarian entry at close.",
        default_values={**BASE_DEFAULTS, "streak_length": 3},
        builder=_build_streak_fade,
    ),
    ScenarioDefinition(
        id="streak-fade-2",
        name="Streak Fade (2)",
        description="Fade 2-day streaks. Faster mean reversion.",
        default_values={**BASE_DEFAULTS, "streak_length": 2},
        builder=_build_streak_fade,
    ),
    ScenarioDefinition(
        id="streak-follow-3",
        name="Streak Follow (3)",
        description="Follow 3-day streaks. Momentum bias.",
        default_values={**BASE_DEFAULTS, "streak_length": 3},
        builder=_build_streak_follow,
    ),
    ScenarioDefinition(
        id="gap-reversion",
        name="Gap Reversion (Daily)",
        description="Fade large open gaps, exit same day.",
        default_values={**BASE_DEFAULTS, "take_profit_pct": 0.01, "stop_loss_pct": 0.005},
        builder=_build_gap_fade,
    ),
    ScenarioDefinition(
        id="sar-fade-flip",
        name="SAR Fade/Flip",
        description="Fade streaks, flip once on stop.",
        default_values={**BASE_DEFAULTS, "streak_length": 3},
        builder=_build_sar_fade_flip,
    ),
    ScenarioDefinition(
        id="trailing-only",
        name="Trailing Only (0.3%)",
        description="Trailing stop dominates, hard SL as catastrophe.",
        default_values={**BASE_DEFAULTS, "trailing_stop_pct": 0.003, "take_profit_pct": 0},
        builder=_build_streak_fade,
    ),
    ScenarioDefinition(
        id="martingale-lite",
        name="Martingale-lite (Capped)",
        description="Size up after losses with strict caps.",
        default_values=dict(BASE_DEFAULTS),
        builder=_build_martingale,
        risk_warning="High risk. Capped martingale only.",
    ),
    ScenarioDefinition(
        id="regime-filter",
        name="Regime Filter MA200 (Fade in Range)",
        description="Fade streaks only on the MA200-friendly side.",
        default_values={**BASE_DEFAULTS, "use_regime_filter": True},
        builder=_build_regime_filter,
    ),
]


def get_scenario(scenario_id: str) -> ScenarioDefinition:
    """
    Look up a scenario by id.

    Raises:
        KeyError: If no scenario has that id.
    """
    for scenario in SCENARIOS:
        if scenario.id == scenario_id:
            return scenario
    raise KeyError(f"Unknown scenario: {scenario_id}")
