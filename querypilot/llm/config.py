"""
AI configuration provider

Model/API settings are read through one injected provider instead of each
component querying global state on its own.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from querypilot.config.settings import Settings, settings as default_settings
from querypilot.utils.errors import ConfigurationError


@dataclass(frozen=True)
class AiConfig:
    """Typed model configuration for one agent run"""
    provider: str
    chat_model: str
    api_key: str = ""
    base_url: Optional[str] = None
    temperature: float = 0.1
    max_output_tokens: int = 4000
    timeout_seconds: float = 60.0


class AiConfigProvider(ABC):
    """Source of AiConfig for the loop, the supervisor and the LLM factory."""

    @abstractmethod
    def get_config(self) -> AiConfig:
        ...


class StaticAiConfigProvider(AiConfigProvider):
    """Provider wrapping a fixed AiConfig (tests, embedding callers)."""

    def __init__(self, config: AiConfig):
        self._config = config

    def get_config(self) -> AiConfig:
        return self._config


class SettingsAiConfigProvider(AiConfigProvider):
    """Provider backed by environment Settings."""

    def __init__(self, app_settings: Optional[Settings] = None):
        self._settings = app_settings or default_settings

    def get_config(self) -> AiConfig:
        s = self._settings
        provider = s.llm_provider.lower()

        if provider == "openai":
            if not s.openai_api_key:
                raise ConfigurationError("OPENAI_API_KEY is required when LLM_PROVIDER=openai")
            return AiConfig(
                provider=provider,
                chat_model=s.openai_model,
                api_key=s.openai_api_key,
                base_url=s.openai_base_url,
                temperature=s.openai_temperature,
                max_output_tokens=s.max_output_tokens,
                timeout_seconds=s.model_timeout_seconds,
            )

        if provider == "ollama":
            return AiConfig(
                provider=provider,
                chat_model=s.ollama_model,
                base_url=s.ollama_base_url,
                temperature=s.openai_temperature,
                max_output_tokens=s.max_output_tokens,
                timeout_seconds=s.model_timeout_seconds,
            )

        raise ConfigurationError(f"Unsupported LLM provider: {provider}. Supported: 'openai', 'ollama'")
