"""
LLM Provider Registry.

Builds LangChain chat models for the configured generative providers behind
one interface. A single ProviderRegistry is constructed at process start and
passed to the ProviderGateway; there is no module-level client cache.

Usage:
    from src.common.llm_factory import ProviderRegistry

    registry = ProviderRegistry()
    provider = registry.select_provider()          # "openai" (or the backup)
    model = registry.chat_model(provider, get_operation_config(Operation.CONVERSATION_TURN))
    reply = await model.ainvoke(messages)

Provider selection:
    AI_PROVIDER is used when it has a credential. AI_BACKUP_PROVIDER is used
    only when the primary is unavailable, never as a per-call alternate.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from langchain_openai import ChatOpenAI

from src.common.config import Config
from src.common.error_handling import ConfigurationError
from src.common.llm_config import OperationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSettings:
    """Resolved connection settings for one provider."""
    name: str
    api_key: str
    model: str
    base_url: Optional[str] = None


# (settings, operation config) -> object exposing `ainvoke(messages)`
ChatModelBuilder = Callable[[ProviderSettings, OperationConfig], Any]


def build_openai_model(settings: ProviderSettings, op_config: OperationConfig) -> Any:
    """
    Create a ChatOpenAI instance for OpenAI or any OpenAI-compatible endpoint.

    SDK-level retries are disabled; the gateway owns the retry policy.
    """
    llm = ChatOpenAI(
        model=settings.model,
        temperature=op_config.temperature,
        max_tokens=op_config.max_tokens,
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=op_config.timeout_seconds,
        max_retries=0,
    )
    if op_config.json_mode and settings.name == "openai":
        return llm.bind(response_format={"type": "json_object"})
    return llm


def build_anthropic_model(settings: ProviderSettings, op_config: OperationConfig) -> Any:
    """Create a ChatAnthropic instance."""
    # Import here to avoid dependency if not using Anthropic
    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=settings.model,
        temperature=op_config.temperature,
        max_tokens=op_config.max_tokens,
        api_key=settings.api_key,
        timeout=op_config.timeout_seconds,
        max_retries=0,
    )


DEFAULT_BUILDERS: Dict[str, ChatModelBuilder] = {
    "openai": build_openai_model,
    "openrouter": build_openai_model,
    "anthropic": build_anthropic_model,
}


class ProviderRegistry:
    """
    Configuration-driven registry of provider adapters.

    Attributes:
        config: Configuration source (defaults to Config)
    """

    def __init__(
        self,
        config: Any = Config,
        builders: Optional[Dict[str, ChatModelBuilder]] = None,
    ):
        """
        Initialize the registry.

        Args:
            config: Object exposing AI_PROVIDER, AI_BACKUP_PROVIDER and the
                get_provider_* accessors (defaults to Config)
            builders: Extra or replacement builders keyed by provider name
        """
        self.config = config
        self._builders: Dict[str, ChatModelBuilder] = dict(DEFAULT_BUILDERS)
        if builders:
            self._builders.update(builders)
        self._models: Dict[Tuple, Any] = {}

    @property
    def providers(self) -> Tuple[str, ...]:
        """Names of all registered providers."""
        return tuple(self._builders)

    def register(self, name: str, builder: ChatModelBuilder) -> None:
        """Register (or replace) the builder for a provider."""
        self._builders[name] = builder
        # Drop cached models for this provider
        self._models = {key: model for key, model in self._models.items() if key[0] != name}

    def settings_for(self, name: str) -> ProviderSettings:
        """Resolve connection settings for a provider."""
        return ProviderSettings(
            name=name,
            api_key=self.config.get_provider_api_key(name),
            model=self.config.get_provider_model(name),
            base_url=self.config.get_provider_base_url(name),
        )

    def is_available(self, name: Optional[str]) -> bool:
        """A provider is available when it is registered and has a credential."""
        if not name or name not in self._builders:
            return False
        return bool(self.config.get_provider_api_key(name))

    def select_provider(self) -> str:
        """
        Choose the provider for this process.

        Returns:
            The primary provider, or the backup when the primary is unavailable

        Raises:
            ConfigurationError: If neither provider is usable
        """
        primary = self.config.AI_PROVIDER
        if self.is_available(primary):
            return primary

        backup = self.config.AI_BACKUP_PROVIDER
        if backup and backup != primary and self.is_available(backup):
            logger.warning(
                f"Primary provider '{primary}' unavailable (not registered or missing API key), "
                f"using backup provider '{backup}'"
            )
            return backup

        raise ConfigurationError(
            f"No usable LLM provider: primary '{primary}' and backup '{backup}' "
            f"are not registered or have no API key configured"
        )

    def chat_model(self, provider: str, op_config: OperationConfig) -> Any:
        """
        Get (or build once) the chat model for a provider and operation settings.

        Raises:
            ConfigurationError: If the provider is unknown or has no credential
        """
        if not self.is_available(provider):
            raise ConfigurationError(f"Provider '{provider}' is not available")

        key = (
            provider,
            op_config.temperature,
            op_config.max_tokens,
            op_config.timeout_seconds,
            op_config.json_mode,
        )
        if key not in self._models:
            settings = self.settings_for(provider)
            self._models[key] = self._builders[provider](settings, op_config)
            logger.debug(
                f"Created chat model: provider={provider}, model={settings.model}, "
                f"temperature={op_config.temperature}, json_mode={op_config.json_mode}"
            )
        return self._models[key]
