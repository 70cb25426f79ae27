"""
Unit tests for position sizing and the martingale step machine.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from streaklab.risk.position_sizer import MartingaleState, PositionSizer
from streaklab.strategy.spec import MartingaleLite, StreakFadeSpec


def martingale_spec(stop_loss_pct=0.01, **kwargs):
    params = dict(
        base_capital_usd=100,
        leverage=2,
        max_steps=2,
        step_multiplier=2,
        max_exposure_usd=1000,
        max_daily_loss_usd=100,
    )
    params.update(kwargs)
    martingale = MartingaleLite(**params)
    return StreakFadeSpec(
        stop_loss_pct=stop_loss_pct,
        capital_base_usd=martingale.base_capital_usd,
        leverage=martingale.leverage,
        martingale_lite=martingale,
    )


class TestFlatSizing:
    """Tests for sizing without martingale."""

    def test_notional_is_capital_times_leverage(self):
        sizer = PositionSizer(StreakFadeSpec(capital_base_usd=500, leverage=5))
        assert sizer.notional(MartingaleState()) == 2500
        assert sizer.base_capital == 500
        assert sizer.leverage == 5

    def test_state_unchanged_without_martingale(self):
        sizer = PositionSizer(StreakFadeSpec())
        state = MartingaleState()
        assert sizer.record_result(state, -50) is state
        assert not sizer.can_escalate(state)


class TestMartingale:
    """Tests for the capped martingale step machine."""

    def test_escalates_after_losses(self):
        sizer = PositionSizer(martingale_spec())
        state = MartingaleState()
        assert sizer.notional(state) == 200

        state = sizer.record_result(state, -2)
        assert state == MartingaleState(step=1, escalations=1, max_step_reached=1)
        assert sizer.notional(state) == 400

        state = sizer.record_result(state, -4)
        assert state.step == 2
        assert sizer.notional(state) == 800

    def test_max_steps_caps_escalation(self):
        sizer = PositionSizer(martingale_spec())
        state = MartingaleState(step=2, escalations=2, max_step_reached=2)
        assert not sizer.can_escalate(state)
        assert sizer.record_result(state, -8) == state

    def test_win_resets_step(self):
        sizer = PositionSizer(martingale_spec())
        state = MartingaleState(step=2, escalations=2, max_step_reached=2)
        state = sizer.record_result(state, 5)
        assert state == MartingaleState(step=0, escalations=2, max_step_reached=2)

    def test_breakeven_counts_as_win(self):
        sizer = PositionSizer(martingale_spec())
        state = sizer.record_result(MartingaleState(step=1, escalations=1, max_step_reached=1), 0.0)
        assert state.step == 0

    def test_exposure_blocks_escalation(self):
        """Default preset values: doubling 5000 would exceed the 5000 cap."""
        sizer = PositionSizer(martingale_spec(
            stop_loss_pct=0.005,
            base_capital_usd=500, leverage=10, max_steps=3,
            max_exposure_usd=5000, max_daily_loss_usd=150,
        ))
        state = MartingaleState()
        assert sizer.notional(state) == 5000
        assert not sizer.can_escalate(state)
        assert sizer.record_result(state, -30) == state

    def test_daily_loss_blocks_escalation(self):
        sizer = PositionSizer(martingale_spec(
            stop_loss_pct=0.1, max_exposure_usd=10000, max_daily_loss_usd=50, max_steps=5,
        ))
        # step 1 notional 400 risks 40, step 2 would risk 80
        state = sizer.record_result(MartingaleState(), -20)
        assert state.step == 1
        assert not sizer.can_escalate(state)

    def test_notional_clamped_to_exposure(self):
        sizer = PositionSizer(martingale_spec(max_exposure_usd=300))
        assert sizer.notional(MartingaleState(step=1)) == 300

    def test_notional_clamped_to_daily_loss(self):
        sizer = PositionSizer(martingale_spec(
            stop_loss_pct=0.02,
            base_capital_usd=1000, leverage=5, max_exposure_usd=10000, max_daily_loss_usd=50,
        ))
        notional = sizer.notional(MartingaleState())
        assert notional == pytest.approx(2500)
        assert notional * 0.02 <= 50 + 1e-9

    def test_martingale_overrides_spec_capital(self):
        martingale = MartingaleLite(
            base_capital_usd=800, leverage=3, max_steps=1,
            max_exposure_usd=5000, max_daily_loss_usd=500,
        )
        sizer = PositionSizer(StreakFadeSpec(capital_base_usd=100, leverage=1, martingale_lite=martingale))
        assert sizer.base_capital == 800
        assert sizer.leverage == 3
