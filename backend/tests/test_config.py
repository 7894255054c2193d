"""Tests for Settings validation."""

import pydantic
import pytest

from app.core.config import ConfigurationError, Environment, Settings


class TestSettings:

    def test_log_level_is_normalised(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_stale_threshold_must_outlast_a_job(self):
        with pytest.raises(pydantic.ValidationError, match="stale_job_seconds"):
            Settings(stale_job_seconds=30, integration_timeout_seconds=30, integration_max_attempts=2)

    def test_zero_attempts_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(integration_max_attempts=0)

    def test_wildcard_cors_rejected(self):
        with pytest.raises(ValueError, match="Wildcard"):
            Settings(cors_allowed_origins="*").get_cors_origins()


class TestProductionConfig:

    def test_insecure_defaults_block_production(self):
        config = Settings(environment=Environment.PRODUCTION, auth_enabled=False)
        with pytest.raises(ConfigurationError, match="AUTH_ENABLED"):
            config.validate_production_config()

    def test_development_only_warns(self):
        Settings(environment=Environment.DEVELOPMENT).validate_production_config()
