"""
Strategy specs, entry signals and preset scenarios.
"""

from .spec import (
    Template,
    Direction,
    SpecValidationError,
    StreakFadeSpec,
    StreakFollowSpec,
    SarFadeFlipSpec,
    GapFadeSpec,
    StrategySpec,
    parse_spec,
    clamp_spec,
)
from .signals import Side, Signal, SignalDetector, detect_signal, check_signal_today
from .scenarios import SCENARIOS, ScenarioDefinition, get_scenario

__all__ = [
    # Specs
    "Template",
    "Direction",
    "SpecValidationError",
    "StreakFadeSpec",
    "StreakFollowSpec",
    "SarFadeFlipSpec",
    "GapFadeSpec",
    "StrategySpec",
    "parse_spec",
    "clamp_spec",

    # Signals
    "Side",
    "Signal",
    "SignalDetector",
    "detect_signal",
    "check_signal_today",

    # Scenarios
    "SCENARIOS",
    "ScenarioDefinition",
    "get_scenario",
]
