"""
Unit tests for ConfigManager defaults, in-memory overrides and validators.
"""

import pytest

from merit.core.config.errors import ConfigInitializationError, ConfigValidationError
from merit.core.config.manager import ConfigManager


@pytest.mark.unit
class TestConfigManagerRead:
    def test_yaml_defaults_loaded(self, config_manager):
        assert config_manager.get("tiers.thresholds.excellent") == 800
        assert config_manager.get("rating.reward_points.good") == 5
        assert config_manager.get("ledger.history.max_limit") == 100

    def test_missing_key_returns_default(self, config_manager):
        assert config_manager.get("does.not.exist", 42) == 42
        assert config_manager.get("tiers.thresholds.legendary") is None

    def test_missing_directory_uses_code_defaults(self, tmp_path):
        ConfigManager.reset()
        ConfigManager.load_defaults(tmp_path / "absent")

        assert ConfigManager.get("tiers.thresholds.good", 600) == 600

    def test_yaml_files_deep_merge(self, tmp_path):
        (tmp_path / "a.yaml").write_text("tiers:\n  thresholds:\n    average: 100\n    good: 200\n")
        (tmp_path / "b.yaml").write_text("tiers:\n  thresholds:\n    good: 250\n")

        ConfigManager.reset()
        ConfigManager.load_defaults(tmp_path)

        assert ConfigManager.get("tiers.thresholds") == {"average": 100, "good": 250}

    def test_invalid_yaml_raises(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("tiers: [unclosed\n")

        ConfigManager.reset()
        with pytest.raises(ConfigInitializationError):
            ConfigManager.load_defaults(tmp_path)


@pytest.mark.unit
class TestConfigManagerWrite:
    def test_set_local_applies_nested_key(self, config_manager):
        config_manager.set_local("rating.reward_points.good", 6)

        assert config_manager.get("rating.reward_points.good") == 6
        assert config_manager.get("rating.reward_points.excellent") == 10

    def test_validator_rejects_whole_section(self, config_manager):
        def no_negative(value):
            if value < 0:
                raise ConfigValidationError("negative")
            return value

        config_manager.register_validator("refresh.interval_seconds", no_negative)

        with pytest.raises(ConfigValidationError):
            config_manager.set_local("refresh.interval_seconds", -1)
        assert config_manager.get("refresh.interval_seconds") == 30

    def test_validator_value_error_wrapped(self, config_manager):
        config_manager.register_validator("refresh.interval_seconds", float)

        with pytest.raises(ConfigValidationError):
            config_manager.set_local("refresh.interval_seconds", "soon")

    def test_cannot_descend_into_scalar(self, config_manager):
        with pytest.raises(ConfigValidationError):
            config_manager.set_local("refresh.interval_seconds.value", 3)

    def test_reset_clears_validators(self, config_manager):
        config_manager.register_validator("refresh.interval_seconds", float)
        config_manager.reset()
        config_manager.load_defaults()

        config_manager.set_local("refresh.interval_seconds", "soon")
        assert config_manager.get("refresh.interval_seconds") == "soon"


