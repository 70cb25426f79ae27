"""
Load strategy specs from YAML or JSON files.
"""

from pathlib import Path
from typing import Optional

import yaml

from ..strategy.scenarios import get_scenario
from ..strategy.spec import SpecValidationError, StrategySpec, clamp_spec, parse_spec


def load_spec_file(path: str) -> StrategySpec:
    """
    Parse a spec file and return the clamped spec.

    JSON is valid YAML, so one loader covers both formats.

    Raises:
        SpecValidationError: If the file is missing or holds an invalid spec.
    """
    spec_path = Path(path)
    if not spec_path.exists():
        raise SpecValidationError(f"Spec file not found: {spec_path}")

    try:
        with open(spec_path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SpecValidationError(f"Spec file {spec_path} is not valid YAML/JSON: {e}") from e

    return clamp_spec(parse_spec(data))


def resolve_spec(
    spec_path: Optional[str] = None,
    scenario_id: Optional[str] = None,
    symbol: Optional[str] = None,
    lookback_days: int = 120
) -> StrategySpec:
    """
    Resolve the spec for a CLI run from a file or a preset scenario.

    A symbol given here overrides the one in the file.
    """
    if spec_path:
        spec = load_spec_file(spec_path)
        if symbol:
            spec = spec.with_overrides(symbol=symbol)
        return spec

    if scenario_id:
        try:
            scenario = get_scenario(scenario_id)
        except KeyError as e:
            raise SpecValidationError(str(e.args[0])) from None
        return scenario.build_spec(lookback_days=lookback_days, symbol=symbol or "SPY")

    raise SpecValidationError("Either a spec file or a scenario id is required")
