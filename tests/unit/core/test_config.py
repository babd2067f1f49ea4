"""
Tests for scheduler configuration
"""
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


class TestSettings:
    """Tests for Settings configuration class"""

    def test_default_values(self):
        """Test default configuration values"""
        from revise.core.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.APP_NAME == "revise"
            assert settings.ENVIRONMENT == "development"
            assert settings.DESIRED_RETENTION == 0.9
            assert settings.MINIMUM_INTERVAL == 1
            assert settings.MAXIMUM_INTERVAL == 36500
            assert settings.GRADUATION_THRESHOLD == 1
            assert settings.ENABLE_FUZZ is True
            assert settings.FUZZ_SEED is None
            assert settings.WEIGHTS_PATH is None

    def test_optimizer_defaults(self):
        """Test parameter optimization defaults"""
        from revise.core.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.OPTIMIZER_MIN_REVIEWS == 50
            assert settings.OPTIMIZER_LEARNING_RATE == 0.04
            assert settings.OPTIMIZER_REGULARIZATION == 0.0
            assert settings.OPTIMIZER_GRADIENT_TOLERANCE == 1e-4
            assert settings.OPTIMIZER_MIN_IMPROVEMENT == 1e-3

    def test_environment_override(self):
        """Test REVISE_ prefixed environment variables"""
        from revise.core.config import Settings

        env = {
            "REVISE_DESIRED_RETENTION": "0.85",
            "REVISE_FUZZ_SEED": "17",
            "REVISE_ENABLE_FUZZ": "false",
            "REVISE_MAXIMUM_INTERVAL": "365",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

            assert settings.DESIRED_RETENTION == 0.85
            assert settings.FUZZ_SEED == 17
            assert settings.ENABLE_FUZZ is False
            assert settings.MAXIMUM_INTERVAL == 365

    @pytest.mark.parametrize("env", [
        {"REVISE_DESIRED_RETENTION": "1.0"},
        {"REVISE_DESIRED_RETENTION": "0"},
        {"REVISE_MINIMUM_INTERVAL": "0"},
        {"REVISE_GRADUATION_THRESHOLD": "0"},
        {"REVISE_MINIMUM_INTERVAL": "30", "REVISE_MAXIMUM_INTERVAL": "10"},
    ])
    def test_invalid_values(self, env):
        """Test validation of scheduling policy"""
        from revise.core.config import Settings

        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)


class TestConfigFromSettings:
    """Tests for building component configs from settings"""

    def test_scheduler_config(self):
        from revise.core.config import Settings
        from revise.fsrs.scheduler import SchedulerConfig

        with patch.dict(os.environ, {"REVISE_GRADUATION_THRESHOLD": "3"}, clear=True):
            config = SchedulerConfig.from_settings(Settings(_env_file=None))

        assert config.graduation_threshold == 3
        assert config.desired_retention == 0.9

    def test_optimizer_config(self):
        from revise.core.config import Settings
        from revise.fsrs.parameter_learning import OptimizerConfig

        env = {
            "REVISE_OPTIMIZER_MAX_ITERATIONS": "12",
            "REVISE_OPTIMIZER_MIN_IMPROVEMENT": "0.01",
        }
        with patch.dict(os.environ, env, clear=True):
            config = OptimizerConfig.from_settings(Settings(_env_file=None))

        assert config.max_iterations == 12
        assert config.min_improvement == 0.01
        assert config.min_reviews == 50
