"""Unit tests for application settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from callops.config import Environment, get_settings


class TestSettings:
    def test_defaults(self):
        s = get_settings(_env_file=None)
        assert s.app_env == Environment.DEVELOPMENT
        assert s.circuit_breaker_failure_threshold == 5
        assert s.circuit_breaker_cooldown_seconds == 60.0
        assert s.manual_probe_bypasses_cooldown is True
        assert s.probe_max_attempts == 2

    def test_log_level_upper_cased(self):
        assert get_settings(log_level="debug").log_level == "DEBUG"

    def test_database_url_scheme_checked(self):
        with pytest.raises(ValidationError):
            get_settings(database_url="mysql://localhost/callops")

    def test_production_requires_jwt_secret(self):
        with pytest.raises(ValidationError):
            get_settings(app_env="production")

    def test_json_logs_follow_environment(self):
        assert get_settings(app_env="production", jwt_secret_key="x" * 32).render_json_logs
        assert not get_settings(app_env="development").render_json_logs
        assert get_settings(json_logs=True).render_json_logs

    def test_threshold_must_be_positive(self):
        with pytest.raises(ValidationError):
            get_settings(circuit_breaker_failure_threshold=0)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CIRCUIT_BREAKER_COOLDOWN_SECONDS", "15")
        assert get_settings().circuit_breaker_cooldown_seconds == 15.0
