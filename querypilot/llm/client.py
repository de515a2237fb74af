"""
LLM client factory

Creates appropriate LLM instances from an AiConfig.
"""

from typing import Optional

from loguru import logger

from querypilot.llm.config import AiConfig, AiConfigProvider, SettingsAiConfigProvider
from querypilot.utils.errors import ConfigurationError


def _mask_key(api_key: str) -> str:
    if len(api_key) > 12:
        return api_key[:8] + "..." + api_key[-4:]
    return "***"


def create_llm(
    config: Optional[AiConfig] = None,
    provider: Optional[AiConfigProvider] = None,
    temperature: Optional[float] = None,
):
    """
    Factory function to create a chat model from AI configuration.

    Args:
        config: Explicit AiConfig (wins over provider)
        provider: AiConfigProvider to read from (defaults to Settings)
        temperature: Override for the configured temperature

    Returns:
        LangChain ChatModel instance (ChatOpenAI or ChatOllama)
    """
    if config is None:
        config = (provider or SettingsAiConfigProvider()).get_config()

    temp = temperature if temperature is not None else config.temperature

    if config.provider == "openai":
        from langchain_openai import ChatOpenAI

        logger.info(
            f"LLM Provider: OpenAI | Model: {config.chat_model} | "
            f"Base URL: {config.base_url or 'default'} | API key: {_mask_key(config.api_key)}"
        )
        return ChatOpenAI(
            model=config.chat_model,
            api_key=config.api_key,
            base_url=config.base_url,
            temperature=temp,
            max_completion_tokens=config.max_output_tokens,
            timeout=config.timeout_seconds,
        )

    if config.provider == "ollama":
        from langchain_community.chat_models import ChatOllama

        logger.info(f"LLM Provider: Ollama | Base URL: {config.base_url} | Model: {config.chat_model}")
        return ChatOllama(
            model=config.chat_model,
            base_url=config.base_url,
            temperature=temp,
            num_predict=config.max_output_tokens,  # Ollama uses num_predict instead of max_completion_tokens
        )

    raise ConfigurationError(f"Unsupported LLM provider: {config.provider}. Supported: 'openai', 'ollama'")
