"""
Strategy specification: one frozen dataclass per trade template.

A spec is validated on construction and never mutated afterwards. Variants:
- StreakFadeSpec / StreakFollowSpec: enter at the close after N-day streaks
- SarFadeFlipSpec: streak fade that reverses into the opposite side on stop
- GapFadeSpec: fade opening gaps, enter at the open

Exit targets are carried as an ExitPlan (static take-profit, trailing stop,
or no target) so that a spec can never hold both at once.
"""

import dataclasses
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union


class SpecValidationError(ValueError):
    """Raised when a strategy specification fails validation."""


class Template(Enum):
    """Trade templates."""
    STREAK_FADE = "streak_fade"
    STREAK_FOLLOW = "streak_follow"
    SAR_FADE_FLIP = "sar_fade_flip"
    GAP_FADE = "gap_fade"


class Direction(Enum):
    """Trade direction relative to the detected move."""
    FADE = "fade"
    FOLLOW = "follow"


class RegimeMode(Enum):
    """Regime filter modes accepted on input."""
    PRICE_NEAR_MA = "price_near_ma"
    LOW_TREND_STRENGTH = "low_trend_strength"


def _check_range(
    name: str,
    value: float,
    low: float,
    high: float,
    integer: bool = False,
    low_inclusive: bool = True
) -> None:
    """Raise SpecValidationError unless low <= value <= high."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SpecValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise SpecValidationError(f"{name} must be finite, got {value}")
    if integer and int(value) != value:
        raise SpecValidationError(f"{name} must be an integer, got {value}")
    below = value < low if low_inclusive else value <= low
    if below or value > high:
        bracket = "[" if low_inclusive else "("
        raise SpecValidationError(f"{name} must be in {bracket}{low}, {high}], got {value}")


def _check_int_field(obj, attr: str, name: str, low: int, high: int) -> None:
    """Range-check an integer field and store it as int (YAML may give 1.0)."""
    value = getattr(obj, attr)
    _check_range(name, value, low, high, integer=True)
    object.__setattr__(obj, attr, int(value))


@dataclass(frozen=True)
class Costs:
    """Transaction cost model."""
    commission_per_side_usd: float = 0.0
    slippage_bps: float = 0.0
    margin_interest_apr: float = 0.0

    def __post_init__(self):
        _check_range("commission_per_side_usd", self.commission_per_side_usd, 0, 50)
        _check_range("slippage_bps", self.slippage_bps, 0, 50)
        _check_range("margin_interest_apr", self.margin_interest_apr, 0, 1)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class RegimeFilter:
    """Moving-average regime gate."""
    length: int = 200
    mode: RegimeMode = RegimeMode.PRICE_NEAR_MA

    def __post_init__(self):
        _check_int_field(self, "length", "regime_filter.length", 50, 400)
        if not isinstance(self.mode, RegimeMode):
            raise SpecValidationError(f"regime_filter.mode must be a RegimeMode, got {self.mode!r}")

    def to_dict(self) -> dict:
        return {"type": "ma", "length": self.length, "allow_fade_only_if": self.mode.value}


@dataclass(frozen=True)
class MartingaleLite:
    """Capped size escalation after losing trades."""
    base_capital_usd: float
    leverage: float
    max_steps: int
    max_exposure_usd: float
    max_daily_loss_usd: float
    step_multiplier: float = 2.0

    def __post_init__(self):
        _check_range("martingale_lite.base_capital_usd", self.base_capital_usd, 50, 100000)
        _check_range("martingale_lite.leverage", self.leverage, 1, 10)
        _check_int_field(self, "max_steps", "martingale_lite.max_steps", 0, 5)
        _check_range("martingale_lite.step_multiplier", self.step_multiplier, 1, 5)
        _check_range("martingale_lite.max_exposure_usd", self.max_exposure_usd, 100, 250000)
        _check_range("martingale_lite.max_daily_loss_usd", self.max_daily_loss_usd, 50, 50000)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class StaticTakeProfit:
    """Fixed take-profit distance from entry."""
    pct: float

    def __post_init__(self):
        _check_range("take_profit_pct", self.pct, 0, 0.2, low_inclusive=False)


@dataclass(frozen=True)
class TrailingStop:
    """Stop that ratchets with the best price since entry."""
    pct: float

    def __post_init__(self):
        _check_range("trailing_stop_pct", self.pct, 0, 0.2, low_inclusive=False)


@dataclass(frozen=True)
class NoTarget:
    """Exit only on stop-loss or time."""


ExitPlan = Union[StaticTakeProfit, TrailingStop, NoTarget]


def make_exit_plan(
    take_profit_pct: Optional[float] = None,
    trailing_stop_pct: Optional[float] = None
) -> ExitPlan:
    """
    Build an exit plan from the two optional wire fields.

    Trailing overrides take-profit when both are given; a take-profit of 0
    means no target.
    """
    if take_profit_pct is not None:
        _check_range("take_profit_pct", take_profit_pct, 0, 0.2)
    if trailing_stop_pct is not None:
        _check_range("trailing_stop_pct", trailing_stop_pct, 0.001, 0.2)
        return TrailingStop(trailing_stop_pct)
    if take_profit_pct:
        return StaticTakeProfit(take_profit_pct)
    return NoTarget()


@dataclass(frozen=True)
class BaseSpec:
    """Fields shared by every template."""
    template: ClassVar[Template]
    entry_on: ClassVar[str] = "close"

    symbol: str = "SPY"
    lookback_days: int = 120
    capital_base_usd: float = 500.0
    leverage: float = 1.0
    costs: Costs = field(default_factory=Costs)
    regime_filter: Optional[RegimeFilter] = None
    martingale_lite: Optional[MartingaleLite] = None

    def __post_init__(self):
        if not self.symbol:
            raise SpecValidationError("symbol is required")
        _check_int_field(self, "lookback_days", "lookback_days", 20, 260)
        _check_range("capital_base_usd", self.capital_base_usd, 50, 100000)
        _check_range("leverage", self.leverage, 1, 10)
        _check_range("stop_loss_pct", self.stop_loss_pct, 0.001, 0.2)
        if not isinstance(self.costs, Costs):
            raise SpecValidationError("costs must be a Costs instance")
        if not isinstance(self.exit_plan, (StaticTakeProfit, TrailingStop, NoTarget)):
            raise SpecValidationError(f"exit_plan must be an ExitPlan, got {self.exit_plan!r}")

    @property
    def take_profit_pct(self) -> Optional[float]:
        """Active static take-profit, None when trailing or no target."""
        if isinstance(self.exit_plan, StaticTakeProfit):
            return self.exit_plan.pct
        return None

    @property
    def trailing_stop_pct(self) -> Optional[float]:
        """Active trailing stop distance, if any."""
        if isinstance(self.exit_plan, TrailingStop):
            return self.exit_plan.pct
        return None

    def with_overrides(self, **changes: Any) -> "BaseSpec":
        """Return a re-validated copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        """Serialize to the wire shape accepted by parse_spec."""
        data: Dict[str, Any] = {
            "template": self.template.value,
            "symbol": self.symbol,
            "lookback_days": self.lookback_days,
            "capital_base_usd": self.capital_base_usd,
            "leverage": self.leverage,
            "costs": self.costs.to_dict(),
            "enter_on": self.entry_on,
            "stop_loss_pct": self.stop_loss_pct,
            "hold_max_days": self.hold_max_days,
        }
        if self.take_profit_pct is not None:
            data["take_profit_pct"] = self.take_profit_pct
        if self.trailing_stop_pct is not None:
            data["trailing_stop_pct"] = self.trailing_stop_pct
        if self.regime_filter is not None:
            data["regime_filter"] = self.regime_filter.to_dict()
        if self.martingale_lite is not None:
            data["martingale_lite"] = self.martingale_lite.to_dict()
        return data


@dataclass(frozen=True)
class _StreakSpec(BaseSpec):
    streak_length: int = 3
    direction: Direction = Direction.FADE
    stop_loss_pct: float = 0.005
    exit_plan: ExitPlan = field(default_factory=NoTarget)
    hold_max_days: int = 1

    def __post_init__(self):
        super().__post_init__()
        _check_int_field(self, "streak_length", "streak_length", 2, 5)
        _check_int_field(self, "hold_max_days", "hold_max_days", 1, 10)
        if not isinstance(self.direction, Direction):
            raise SpecValidationError(f"direction must be a Direction, got {self.direction!r}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["streak_length"] = self.streak_length
        data["direction"] = self.direction.value
        return data


@dataclass(frozen=True)
class StreakFadeSpec(_StreakSpec):
    """Trade N-day close streaks; fades by default."""
    template: ClassVar[Template] = Template.STREAK_FADE


@dataclass(frozen=True)
class StreakFollowSpec(_StreakSpec):
    """Trade N-day close streaks; follows by default."""
    template: ClassVar[Template] = Template.STREAK_FOLLOW

    direction: Direction = Direction.FOLLOW


@dataclass(frozen=True)
class SarFadeFlipSpec(_StreakSpec):
    """Streak trade that flips into the reverse side after a stop-loss."""
    template: ClassVar[Template] = Template.SAR_FADE_FLIP
    flip_on_stop: ClassVar[bool] = True

    flip_max_times: int = 1

    def __post_init__(self):
        super().__post_init__()
        _check_int_field(self, "flip_max_times", "flip_max_times", 0, 3)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["flip_on_stop"] = True
        data["flip_max_times"] = self.flip_max_times
        return data


@dataclass(frozen=True)
class GapFadeSpec(BaseSpec):
    """Fade opening gaps beyond a threshold; entry at the open."""
    template: ClassVar[Template] = Template.GAP_FADE
    entry_on: ClassVar[str] = "open"
    direction: ClassVar[Direction] = Direction.FADE

    gap_threshold_pct: float = 0.007
    stop_loss_pct: float = 0.005
    exit_plan: ExitPlan = field(default_factory=NoTarget)
    hold_max_days: int = 0

    def __post_init__(self):
        super().__post_init__()
        _check_range("gap_threshold_pct", self.gap_threshold_pct, 0.001, 0.05)
        _check_int_field(self, "hold_max_days", "hold_max_days", 0, 1)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["gap_threshold_pct"] = self.gap_threshold_pct
        data["direction"] = Direction.FADE.value
        return data


StrategySpec = Union[StreakFadeSpec, StreakFollowSpec, SarFadeFlipSpec, GapFadeSpec]

SPEC_TYPES: Dict[Template, type] = {
    Template.STREAK_FADE: StreakFadeSpec,
    Template.STREAK_FOLLOW: StreakFollowSpec,
    Template.SAR_FADE_FLIP: SarFadeFlipSpec,
    Template.GAP_FADE: GapFadeSpec,
}


def _parse_enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        choices = [e.value for e in enum_cls]
        raise SpecValidationError(f"{name} must be one of {choices}, got {value!r}") from None


def _parse_regime(data: Optional[dict]) -> Optional[RegimeFilter]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise SpecValidationError("regime_filter must be a mapping")
    if data.get("type", "ma") != "ma":
        raise SpecValidationError(f"regime_filter.type must be 'ma', got {data.get('type')!r}")
    mode = data.get("allow_fade_only_if", data.get("mode", RegimeMode.PRICE_NEAR_MA.value))
    return RegimeFilter(
        length=data.get("length", 200),
        mode=_parse_enum(RegimeMode, mode, "regime_filter.mode"),
    )


def _parse_martingale(data: Optional[dict]) -> Optional[MartingaleLite]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise SpecValidationError("martingale_lite must be a mapping")
    required = ["base_capital_usd", "leverage", "max_steps", "max_exposure_usd", "max_daily_loss_usd"]
    missing = [key for key in required if key not in data]
    if missing:
        raise SpecValidationError(f"martingale_lite missing fields: {missing}")
    return MartingaleLite(
        base_capital_usd=data["base_capital_usd"],
        leverage=data["leverage"],
        max_steps=data["max_steps"],
        max_exposure_usd=data["max_exposure_usd"],
        max_daily_loss_usd=data["max_daily_loss_usd"],
        step_multiplier=data.get("step_multiplier", 2.0),
    )


def parse_spec(data: Dict[str, Any]) -> StrategySpec:
    """
    Validate a wire-format mapping and build the matching spec variant.

    Args:
        data: Mapping with a "template" tag and the template's fields.

    Returns:
        A frozen spec instance.

    Raises:
        SpecValidationError: If any field is missing or out of range.
    """
    if not isinstance(data, dict):
        raise SpecValidationError("spec must be a mapping")
    if "template" not in data:
        raise SpecValidationError("template is required")

    template = _parse_enum(Template, data["template"], "template")
    spec_cls = SPEC_TYPES[template]

    expected_entry = spec_cls.entry_on
    if data.get("enter_on", expected_entry) != expected_entry:
        raise SpecValidationError(
            f"{template.value} enters on '{expected_entry}', got {data['enter_on']!r}"
        )

    for key in ("lookback_days", "capital_base_usd", "leverage", "costs", "stop_loss_pct"):
        if key not in data:
            raise SpecValidationError(f"{key} is required")

    costs_data = data["costs"]
    if not isinstance(costs_data, dict):
        raise SpecValidationError("costs must be a mapping")
    for key in ("commission_per_side_usd", "slippage_bps", "margin_interest_apr"):
        if key not in costs_data:
            raise SpecValidationError(f"costs.{key} is required")

    kwargs: Dict[str, Any] = {
        "symbol": data.get("symbol", "SPY"),
        "lookback_days": data["lookback_days"],
        "capital_base_usd": data["capital_base_usd"],
        "leverage": data["leverage"],
        "costs": Costs(
            commission_per_side_usd=costs_data["commission_per_side_usd"],
            slippage_bps=costs_data["slippage_bps"],
            margin_interest_apr=costs_data["margin_interest_apr"],
        ),
        "regime_filter": _parse_regime(data.get("regime_filter")),
        "martingale_lite": _parse_martingale(data.get("martingale_lite")),
        "stop_loss_pct": data["stop_loss_pct"],
        "exit_plan": make_exit_plan(
            data.get("take_profit_pct"), data.get("trailing_stop_pct")
        ),
    }

    if "hold_max_days" in data:
        kwargs["hold_max_days"] = data["hold_max_days"]

    if template is Template.GAP_FADE:
        if "gap_threshold_pct" not in data:
            raise SpecValidationError("gap_threshold_pct is required")
        if data.get("direction", "fade") != "fade":
            raise SpecValidationError("gap_fade direction must be 'fade'")
        kwargs["gap_threshold_pct"] = data["gap_threshold_pct"]
    else:
        for key in ("streak_length", "direction"):
            if key not in data:
                raise SpecValidationError(f"{key} is required")
        kwargs["streak_length"] = data["streak_length"]
        kwargs["direction"] = _parse_enum(Direction, data["direction"], "direction")

    if template is Template.SAR_FADE_FLIP:
        if data.get("flip_on_stop") is not True:
            raise SpecValidationError("sar_fade_flip requires flip_on_stop = true")
        if "flip_max_times" in data:
            kwargs["flip_max_times"] = data["flip_max_times"]

    return spec_cls(**kwargs)


def clamp_spec(spec: StrategySpec) -> StrategySpec:
    """
    Enforce leverage, martingale step and minimum trailing bounds.

    Returns a new spec; the input is left untouched.
    """
    changes: Dict[str, Any] = {"leverage": min(10, max(1, spec.leverage))}

    if spec.martingale_lite is not None:
        changes["martingale_lite"] = dataclasses.replace(
            spec.martingale_lite,
            leverage=min(10, max(1, spec.martingale_lite.leverage)),
            max_steps=min(5, max(0, spec.martingale_lite.max_steps)),
        )

    if isinstance(spec.exit_plan, TrailingStop):
        changes["exit_plan"] = TrailingStop(max(0.001, spec.exit_plan.pct))

    return dataclasses.replace(spec, **changes)
