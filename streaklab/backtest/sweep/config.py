"""
Sweep configuration dataclass.
"""

from dataclasses import dataclass
from typing import List, Tuple

from ...config.settings import SweepSettings


class SweepConfigError(ValueError):
    """Raised when sweep ranges or grid size are invalid."""


def generate_range(low: float, high: float, steps: int) -> List[float]:
    """
    Evenly spaced values from low to high inclusive.

    A single step yields just [low].
    """
    if steps <= 1:
        return [low]
    values = [low + (high - low) * i / (steps - 1) for i in range(steps)]
    # Pin the end point so float error never lands outside the range
    values[-1] = high
    return values


@dataclass
class SweepConfig:
    """Grid over stop-loss x take-profit."""

    stop_loss_range: Tuple[float, float] = (0.003, 0.02)
    take_profit_range: Tuple[float, float] = (0.005, 0.03)
    steps: int = 5  # Per axis; clamped to [2, 10]
    n_jobs: int = 1  # Parallel runs (1 = sequential)
    min_bars: int = 20

    def __post_init__(self):
        """Validate ranges and clamp the grid size."""
        self.stop_loss_range = self._as_pair(self.stop_loss_range, "stop_loss_range")
        self.take_profit_range = self._as_pair(self.take_profit_range, "take_profit_range")

        sl_min, sl_max = self.stop_loss_range
        tp_min, tp_max = self.take_profit_range

        if sl_min >= sl_max:
            raise SweepConfigError("stop_loss_range min must be < max")
        if tp_min >= tp_max:
            raise SweepConfigError("take_profit_range min must be < max")
        if sl_min < 0.001 or sl_max > 0.2:
            raise SweepConfigError("stop_loss_range must be between 0.1% and 20%")
        if tp_min < 0 or tp_max > 0.2:
            raise SweepConfigError("take_profit_range must be between 0% and 20%")

        self.steps = min(max(int(self.steps), 2), 10)

        if self.n_jobs == 0 or self.n_jobs < -1:
            raise SweepConfigError("n_jobs must be positive or -1 (all cores)")

    @staticmethod
    def _as_pair(value, name: str) -> Tuple[float, float]:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise SweepConfigError(f"{name} must be [min, max]")
        return float(value[0]), float(value[1])

    @property
    def stop_losses(self) -> List[float]:
        return generate_range(*self.stop_loss_range, self.steps)

    @property
    def take_profits(self) -> List[float]:
        return generate_range(*self.take_profit_range, self.steps)

    @property
    def total_runs(self) -> int:
        return self.steps * self.steps

    def to_dict(self) -> dict:
        """Serialize config to dictionary."""
        return {
            "stop_loss_range": list(self.stop_loss_range),
            "take_profit_range": list(self.take_profit_range),
            "steps": self.steps,
            "n_jobs": self.n_jobs,
            "min_bars": self.min_bars,
        }

    @classmethod
    def from_settings(cls, settings: SweepSettings, min_bars: int = 20) -> "SweepConfig":
        """Build a config from the sweep section of the settings file."""
        return cls(
            stop_loss_range=tuple(settings.stop_loss_range),
            take_profit_range=tuple(settings.take_profit_range),
            steps=settings.steps,
            n_jobs=settings.n_jobs,
            min_bars=min_bars,
        )
