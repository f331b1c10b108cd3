"""Tests for settings and the resolved guardrail config."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from farm_guardrail.config import GuardrailConfig, Settings, get_settings


class TestSettings:

    def test_reads_environment(self):
        settings = get_settings()
        assert settings.ifttt_webhook_key == "test_webhook_key_at_least_20_chars"
        assert settings.ifttt_simulation_mode is True
        assert settings.sweeper_enabled is False

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("IFTTT_SIMULATION_MODE", raising=False)
        settings = Settings(_env_file=None)
        assert settings.ifttt_base_url == "https://maker.ifttt.com/trigger"
        assert settings.ifttt_event_prefix == "farm_clawed_"
        assert settings.ifttt_simulation_mode is False
        assert settings.action_ttl_minutes == 45
        assert settings.action_retention_hours == 24

    def test_guardrail_config(self, monkeypatch):
        monkeypatch.setenv("IFTTT_BASE_URL", "https://hooks.example.com/trigger/")
        monkeypatch.setenv("ACTION_TTL_MINUTES", "10")
        config = Settings(_env_file=None).guardrail_config()

        assert config.base_url == "https://hooks.example.com/trigger"
        assert config.default_ttl == timedelta(minutes=10)
        assert config.retention == timedelta(hours=24)
        assert config.simulation_mode is True


class TestGuardrailConfig:

    def test_summary_hides_key(self):
        config = GuardrailConfig(webhook_key="secret_key_value_123456")
        summary = config.summary()

        assert "webhook_key" not in summary
        assert "secret_key_value_123456" not in str(summary)
        assert summary["has_key"] is True
        assert summary["default_ttl"] == 45 * 60

    def test_summary_without_key(self):
        assert GuardrailConfig().summary()["has_key"] is False

    def test_frozen(self):
        config = GuardrailConfig()
        with pytest.raises(ValidationError):
            config.simulation_mode = True

    @pytest.mark.parametrize("field,value", [
        ("timeout", 0),
        ("retries", 6),
        ("rate_limit_seconds", -1),
    ])
    def test_range_validation(self, field, value):
        with pytest.raises(ValidationError):
            GuardrailConfig(**{field: value})

    def test_settings_reject_zero_ttl(self, monkeypatch):
        monkeypatch.setenv("ACTION_TTL_MINUTES", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
