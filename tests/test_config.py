"""
Tests for engine configuration files and environment overrides.
"""

import json
import logging

import pytest


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_defaults(self):
        """Test default values."""
        from tonecurve.core.config import EngineConfig
        from tonecurve.core.types import Acceleration

        config = EngineConfig()
        assert config.lut_size is None
        assert config.use_optimizer is False
        options = config.to_options()
        assert options.acceleration == Acceleration.PARALLEL
        assert options.lut_size is None

    def test_save_load(self, tmp_path):
        """Test writing and reading a config file."""
        from tonecurve.core.config import EngineConfig

        path = tmp_path / "tonecurve.json"
        original = EngineConfig(lut_size=1024, acceleration="serial", use_optimizer=True)
        original.save(path)

        with open(path) as f:
            assert json.load(f)["engine"]["lut_size"] == 1024
        assert EngineConfig.load(path) == original

    def test_flat_file(self, tmp_path):
        """Test a file without the "engine" section."""
        from tonecurve.core.config import load_config

        path = tmp_path / "flat.json"
        path.write_text(json.dumps({"thread_count": 3}))
        assert load_config(path).thread_count == 3

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        from tonecurve.core.config import load_config

        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")

    def test_unknown_keys_warn(self, caplog):
        """Test that unknown keys are ignored with a warning."""
        from tonecurve.core.config import config_from_dict

        with caplog.at_level(logging.WARNING, logger="tonecurve.core.config"):
            config = config_from_dict({"quality": 0.5, "tracker": "csrt"})
        assert config.quality == 0.5
        assert "tracker" in caplog.text

    def test_bad_acceleration(self):
        """Test that an unknown acceleration mode fails at load time."""
        from tonecurve.core.config import config_from_dict

        with pytest.raises(ValueError):
            config_from_dict({"acceleration": "quantum"})

    def test_env_overrides(self, monkeypatch):
        """Test TONECURVE_ environment variables."""
        from tonecurve.core.config import EngineConfig, get_env_config

        monkeypatch.setenv("TONECURVE_THREAD_COUNT", "6")
        monkeypatch.setenv("TONECURVE_LUT_SIZE", "none")
        monkeypatch.setenv("TONECURVE_USE_OPTIMIZER", "yes")
        monkeypatch.setenv("TONECURVE_OPTIMIZER_TIMEOUT", "0.5")

        assert get_env_config()["thread_count"] == "6"
        config = EngineConfig(lut_size=512).with_env()
        assert config.thread_count == 6
        assert config.lut_size is None
        assert config.use_optimizer is True
        assert config.optimizer_timeout == 0.5

    def test_env_bad_value(self, monkeypatch):
        """Test that malformed numeric overrides raise ValueError."""
        from tonecurve.core.config import EngineConfig

        monkeypatch.setenv("TONECURVE_THREAD_COUNT", "many")
        with pytest.raises(ValueError):
            EngineConfig().with_env()
