"""
LLM layer - configuration provider, client factory and response utilities
"""

from querypilot.llm.client import create_llm
from querypilot.llm.config import (
    AiConfig,
    AiConfigProvider,
    SettingsAiConfigProvider,
    StaticAiConfigProvider,
)
from querypilot.llm.response_utils import extract_text_from_response

__all__ = [
    "create_llm",
    "AiConfig",
    "AiConfigProvider",
    "SettingsAiConfigProvider",
    "StaticAiConfigProvider",
    "extract_text_from_response",
]
