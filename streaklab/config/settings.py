"""
Settings for the CLIs and runners.

Values come from dataclass defaults, then a YAML file, then environment
variables (highest priority).
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import yaml


class SettingsError(ValueError):
    """Raised when the settings file cannot be interpreted."""


@dataclass
class DataConfig:
    """Where price CSVs live and how much history a run needs."""
    prices_dir: str = "data/prices"
    default_symbol: str = "SPY"
    min_bars: int = 20  # Runs on fewer bars are refused


@dataclass
class SignalConfig:
    """Live signal scan window."""
    lookback_days: int = 30
    min_bars: int = 10


@dataclass
class SweepSettings:
    """Default stop-loss x take-profit grid."""
    stop_loss_range: list[float] = field(default_factory=lambda: [0.003, 0.02])
    take_profit_range: list[float] = field(default_factory=lambda: [0.005, 0.03])
    steps: int = 5
    n_jobs: int = 1  # 1 = sequential, -1 = all cores


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"  # "text" or "json"


@dataclass
class Settings:
    """All settings sections."""
    data: DataConfig = field(default_factory=DataConfig)
    signals: SignalConfig = field(default_factory=SignalConfig)
    sweep: SweepSettings = field(default_factory=SweepSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# (variable, section, attribute, parser)
_ENV_OVERRIDES = [
    ("PRICES_DIR", "data", "prices_dir", str),
    ("MIN_BARS", "data", "min_bars", int),
    ("SWEEP_STEPS", "sweep", "steps", int),
    ("SWEEP_JOBS", "sweep", "n_jobs", int),
    ("LOG_LEVEL", "logging", "level", str.upper),
    ("LOG_FORMAT", "logging", "format", str.lower),
]


def _candidate_paths() -> Iterator[Path]:
    env_path = os.environ.get("CONFIG_PATH")
    if env_path:
        yield Path(env_path)
    yield Path("config/config.yaml")
    yield Path("config.yaml")
    yield Path(__file__).resolve().parents[2] / "config" / "config.yaml"


def _find_config_file() -> Optional[Path]:
    return next((p for p in _candidate_paths() if p.is_file()), None)


def _coerce(value: Any, default: Any, name: str) -> Any:
    """Convert a YAML value to the type of the field's default."""
    if isinstance(default, bool) or value is None:
        return value
    try:
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, list):
            return [float(v) for v in value]
    except (TypeError, ValueError) as e:
        raise SettingsError(f"{name}: cannot use {value!r}") from e
    return value


def _merge_section(section: Any, name: str, data: Optional[Dict[str, Any]]) -> None:
    """Apply known keys from `data` onto a section; unknown keys are ignored."""
    if data is None:
        return
    if not isinstance(data, dict):
        raise SettingsError(f"Section '{name}' must be a mapping")

    for f in fields(section):
        if f.name in data:
            current = getattr(section, f.name)
            setattr(section, f.name, _coerce(data[f.name], current, f"{name}.{f.name}"))


def _apply_env_overrides(settings: Settings) -> None:
    for variable, section, attribute, parse in _ENV_OVERRIDES:
        raw = os.environ.get(variable)
        if raw:
            setattr(getattr(settings, section), attribute, parse(raw))


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build settings from defaults, the YAML file and the environment.

    Args:
        config_path: Explicit file; otherwise CONFIG_PATH and the usual
            locations are searched.

    Raises:
        SettingsError: If a section is not a mapping or a value has the
            wrong type.
    """
    settings = Settings()

    path = Path(config_path) if config_path else _find_config_file()
    if path is not None and path.is_file():
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise SettingsError(f"{path}: top level must be a mapping")
        for section in fields(settings):
            _merge_section(getattr(settings, section.name), section.name, data.get(section.name))

    _apply_env_overrides(settings)
    return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """Reload the process-wide settings (e.g. after a --config flag)."""
    global _settings
    _settings = load_settings(config_path)
    return _settings
