"""Tests for settings loading and secret helpers."""

import pytest
from pydantic import SecretStr, ValidationError

from config import Settings
from models.errors import ConfigurationError
from utils.secrets import require_secret, secret_to_str


class TestSettings:
    """Test Settings defaults and environment loading."""

    def test_defaults(self, monkeypatch):
        for name in ("PROVIDER", "MODEL", "APP_ENV", "LLM_TEMPERATURE"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.provider == "anthropic"
        assert settings.model is None
        assert settings.llm_temperature == 0.2
        assert settings.cache.enabled
        assert settings.cache.backend == "memory"
        assert settings.rate_limit.max_per_minute == 60
        assert settings.retry.max_attempts == 3
        assert settings.retry.base_delay_seconds == 0.5
        assert settings.agent_max_iterations == 5
        assert settings.is_dev

    def test_nested_groups_from_environment(self, monkeypatch):
        monkeypatch.setenv("CACHE__TTL_SECONDS", "600")
        monkeypatch.setenv("CACHE__BACKEND", "redis")
        monkeypatch.setenv("RATE_LIMIT__MAX_PER_MINUTE", "5")
        monkeypatch.setenv("RETRY__BASE_DELAY_MS", "250")

        settings = Settings(_env_file=None)

        assert settings.cache.ttl_seconds == 600
        assert settings.cache.backend == "redis"
        assert settings.rate_limit.max_per_minute == 5
        assert settings.retry.base_delay_seconds == 0.25

    def test_provider_and_keys_from_environment(self, monkeypatch):
        monkeypatch.setenv("PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

        settings = Settings(_env_file=None)

        assert settings.provider == "openai"
        assert settings.openai_api_key.get_secret_value() == "sk-env"
        assert "sk-env" not in repr(settings)

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, provider="mistral")

    def test_retry_attempts_bounded(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, retry={"max_attempts": 0})

    def test_prompt_dir(self, test_settings):
        assert test_settings.assistant_prompts_dir.name == "assistant"
        assert (test_settings.assistant_prompts_dir / "active.json").exists()


class TestSecrets:
    """Test secret helpers."""

    def test_secret_to_str(self):
        assert secret_to_str(SecretStr("sk-1")) == "sk-1"
        assert secret_to_str(SecretStr("")) is None
        assert secret_to_str(None) is None
        assert secret_to_str("plain") == "plain"

    def test_require_secret_precedence(self):
        assert require_secret(None, SecretStr(""), SecretStr("second"), "third", env_var="X") == "second"

    def test_require_secret_missing(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY is not set"):
            require_secret(None, SecretStr(""), env_var="OPENAI_API_KEY")
