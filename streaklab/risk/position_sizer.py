"""
Position sizing with an optional capped martingale step machine.
"""

from dataclasses import dataclass, replace

from ..observability.logger import get_logger
from ..strategy.spec import StrategySpec

logger = get_logger(__name__)


@dataclass(frozen=True)
class MartingaleState:
    """Step counter carried across the trades of one run."""
    step: int = 0
    escalations: int = 0
    max_step_reached: int = 0


class PositionSizer:
    """
    Computes the notional of each new trade.

    Without martingale settings the notional is capital_base_usd * leverage
    for every trade. With martingale_lite, the size grows by step_multiplier
    per step after losses, bounded by max_steps, max_exposure_usd and
    max_daily_loss_usd (worst loss = notional * stop_loss_pct).
    """

    def __init__(self, spec: StrategySpec):
        """
        Initialize the sizer.

        Args:
            spec: Validated, clamped strategy spec.
        """
        self.spec = spec
        self.martingale = spec.martingale_lite

        if self.martingale is not None:
            self.base_capital = self.martingale.base_capital_usd
            self.leverage = self.martingale.leverage
        else:
            self.base_capital = spec.capital_base_usd
            self.leverage = spec.leverage

    def _raw_notional(self, step: int) -> float:
        value = self.base_capital * self.leverage
        if self.martingale is not None:
            value *= self.martingale.step_multiplier ** step
        return value

    def notional(self, state: MartingaleState) -> float:
        """
        Notional for the next trade at the given step.

        Args:
            state: Current martingale state.

        Returns:
            Position value in USD after exposure and loss caps.
        """
        value = self._raw_notional(state.step)
        if self.martingale is None:
            return value

        if value > self.martingale.max_exposure_usd:
            value = self.martingale.max_exposure_usd

        worst_loss = value * self.spec.stop_loss_pct
        if worst_loss > self.martingale.max_daily_loss_usd:
            value = self.martingale.max_daily_loss_usd / self.spec.stop_loss_pct

        return value

    def can_escalate(self, state: MartingaleState) -> bool:
        """Whether the next step passes every cap."""
        if self.martingale is None:
            return False

        next_step = state.step + 1
        if next_step > self.martingale.max_steps:
            return False

        raw_value = self._raw_notional(next_step)
        if raw_value > self.martingale.max_exposure_usd:
            return False

        if raw_value * self.spec.stop_loss_pct > self.martingale.max_daily_loss_usd:
            return False

        return True

    def record_result(self, state: MartingaleState, pnl_usd: float) -> MartingaleState:
        """
        Advance the step machine after a closed trade.

        A non-negative pnl resets the step to 0. A loss escalates by one step
        when every cap allows it; otherwise the step is left unchanged.

        Args:
            state: State before the trade closed.
            pnl_usd: Net pnl of the closed trade.

        Returns:
            The new state.
        """
        if self.martingale is None:
            return state

        if pnl_usd >= 0:
            return replace(state, step=0)

        if not self.can_escalate(state):
            logger.risk_event(
                "martingale_capped",
                f"escalation denied at step {state.step}",
                step=state.step,
                max_steps=self.martingale.max_steps
            )
            return state

        step = state.step + 1
        return MartingaleState(
            step=step,
            escalations=state.escalations + 1,
            max_step_reached=max(state.max_step_reached, step),
        )
