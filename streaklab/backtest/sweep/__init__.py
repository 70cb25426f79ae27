"""
Stop-loss x take-profit grid sweep using an Optuna grid study.
"""

from .config import SweepConfig, SweepConfigError, generate_range
from .sweep import ParameterSweep, SweepResult, SweepResults, run_sweep

__all__ = [
    "SweepConfig",
    "SweepConfigError",
    "generate_range",
    "ParameterSweep",
    "SweepResult",
    "SweepResults",
    "run_sweep",
]
