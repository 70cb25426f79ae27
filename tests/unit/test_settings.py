"""
Unit tests for settings loading and environment overrides.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from streaklab.config.settings import (
    Settings,
    SettingsError,
    get_settings,
    load_settings,
    reload_settings,
)


ENV_VARS = ["CONFIG_PATH", "PRICES_DIR", "MIN_BARS", "SWEEP_STEPS", "SWEEP_JOBS", "LOG_LEVEL", "LOG_FORMAT"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for YAML settings and env overrides."""

    def test_defaults(self):
        settings = Settings()
        assert settings.data.min_bars == 20
        assert settings.signals.lookback_days == 30
        assert settings.signals.min_bars == 10
        assert settings.sweep.steps == 5
        assert settings.sweep.stop_loss_range == [0.003, 0.02]
        assert settings.logging.level == "INFO"

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "data:\n"
            "  prices_dir: /tmp/prices\n"
            "  min_bars: 40\n"
            "sweep:\n"
            "  steps: 8\n"
            "  take_profit_range: [0.0, 0.05]\n"
            "logging:\n"
            "  format: json\n"
        )
        settings = load_settings(str(path))
        assert settings.data.prices_dir == "/tmp/prices"
        assert settings.data.min_bars == 40
        assert settings.data.default_symbol == "SPY"
        assert settings.sweep.steps == 8
        assert settings.sweep.take_profit_range == [0.0, 0.05]
        assert settings.logging.format == "json"
        assert settings.signals.lookback_days == 30

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("data:\n  colour: blue\n")
        settings = load_settings(str(path))
        assert not hasattr(settings.data, "colour")

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("sweep:\n  steps: 8\n")
        monkeypatch.setenv("SWEEP_STEPS", "3")
        monkeypatch.setenv("SWEEP_JOBS", "4")
        monkeypatch.setenv("MIN_BARS", "25")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "JSON")

        settings = load_settings(str(path))
        assert settings.sweep.steps == 3
        assert settings.sweep.n_jobs == 4
        assert settings.data.min_bars == 25
        assert settings.logging.level == "DEBUG"
        assert settings.logging.format == "json"

    def test_reload_replaces_global(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("signals:\n  lookback_days: 45\n")
        settings = reload_settings(str(path))
        assert get_settings() is settings
        assert get_settings().signals.lookback_days == 45
        reload_settings()

    def test_values_coerced_to_field_types(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("data:\n  min_bars: '30'\nsweep:\n  stop_loss_range: [1, 2]\n")
        settings = load_settings(str(path))
        assert settings.data.min_bars == 30
        assert settings.sweep.stop_loss_range == [1.0, 2.0]

    def test_bad_values_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("sweep:\n  steps: many\n")
        with pytest.raises(SettingsError):
            load_settings(str(path))

        path.write_text("data: [1, 2]\n")
        with pytest.raises(SettingsError):
            load_settings(str(path))
