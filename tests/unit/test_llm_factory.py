"""
Tests for the provider registry and configuration.

Tests cover:
- Primary/backup provider selection
- ConfigurationError when no provider has a credential
- Chat model caching per provider and operation settings
- Real LangChain adapters are built with SDK retries disabled
"""

from unittest.mock import MagicMock

import pytest

from src.common.config import Config
from src.common.error_handling import ConfigurationError
from src.common.llm_config import Operation, OperationConfig, get_operation_config
from src.common.llm_factory import ProviderRegistry, ProviderSettings, build_openai_model

from fakes import StubConfig


class TestProviderSelection:
    """Test primary and backup selection."""

    def test_uses_primary_when_configured(self):
        registry = ProviderRegistry(config=StubConfig())
        assert registry.select_provider() == "openai"

    def test_falls_back_to_backup_without_primary_key(self):
        registry = ProviderRegistry(config=StubConfig(keys={"anthropic": "sk-ant"}))
        assert registry.select_provider() == "anthropic"

    def test_raises_configuration_error_without_any_key(self):
        registry = ProviderRegistry(config=StubConfig(keys={}))
        with pytest.raises(ConfigurationError, match="No usable LLM provider"):
            registry.select_provider()

    def test_unregistered_primary_is_unavailable(self):
        config = StubConfig(keys={"mystery": "key", "anthropic": "sk-ant"})
        config.AI_PROVIDER = "mystery"
        registry = ProviderRegistry(config=config)
        assert registry.is_available("mystery") is False
        assert registry.select_provider() == "anthropic"

    def test_registered_provider_becomes_available(self):
        config = StubConfig(keys={"mystery": "key"})
        registry = ProviderRegistry(config=config)
        registry.register("mystery", lambda settings, op_config: MagicMock())
        assert "mystery" in registry.providers
        assert registry.is_available("mystery") is True


class TestChatModelCache:
    """Test model construction and caching."""

    def test_builds_once_per_settings(self):
        builder = MagicMock(return_value=object())
        registry = ProviderRegistry(config=StubConfig(), builders={"openai": builder})
        op_config = get_operation_config(Operation.CONVERSATION_TURN)

        first = registry.chat_model("openai", op_config)
        second = registry.chat_model("openai", op_config)

        assert first is second
        builder.assert_called_once()
        settings = builder.call_args[0][0]
        assert settings == ProviderSettings(name="openai", api_key="sk-test", model="openai-test-model")

    def test_different_temperature_builds_new_model(self):
        builder = MagicMock(side_effect=lambda settings, op_config: object())
        registry = ProviderRegistry(config=StubConfig(), builders={"openai": builder})

        registry.chat_model("openai", get_operation_config(Operation.CONVERSATION_TURN))
        registry.chat_model("openai", get_operation_config(Operation.RIASEC_ASSESSMENT))

        assert builder.call_count == 2

    def test_unavailable_provider_raises(self):
        registry = ProviderRegistry(config=StubConfig(keys={"anthropic": "sk-ant"}))
        with pytest.raises(ConfigurationError):
            registry.chat_model("openai", OperationConfig())


class TestAdapters:
    """Test the LangChain adapter builders."""

    def test_openai_model_disables_sdk_retries(self):
        settings = ProviderSettings(name="openrouter", api_key="sk-or-test", model="test/model", base_url="https://example.invalid/v1")
        model = build_openai_model(settings, OperationConfig(temperature=0.2, json_mode=False))
        assert model.max_retries == 0
        assert model.temperature == 0.2


class TestConfig:
    """Test Config helpers."""

    def test_openrouter_base_url_only_for_openrouter(self):
        assert Config.get_provider_base_url("openrouter") == Config.OPENROUTER_BASE_URL
        assert Config.get_provider_base_url("openai") is None

    def test_validate_requires_a_key(self, monkeypatch):
        monkeypatch.setattr(Config, "OPENAI_API_KEY", "")
        monkeypatch.setattr(Config, "ANTHROPIC_API_KEY", "")
        monkeypatch.setattr(Config, "OPENROUTER_API_KEY", "")
        with pytest.raises(ConfigurationError, match="no LLM provider API key"):
            Config.validate()

    def test_validate_rejects_unknown_policy(self, monkeypatch):
        monkeypatch.setattr(Config, "OPENAI_API_KEY", "sk-test")
        monkeypatch.setattr(Config, "RECOMMENDATION_PHASE_POLICY", "sometimes")
        with pytest.raises(ConfigurationError, match="RECOMMENDATION_PHASE_POLICY"):
            Config.validate()

    def test_summary_hides_secrets(self, monkeypatch):
        monkeypatch.setattr(Config, "OPENAI_API_KEY", "sk-secret-value")
        assert "sk-secret-value" not in Config.summary()
