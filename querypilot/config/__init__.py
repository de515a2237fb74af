"""
Configuration layer - Settings and constants
"""

from querypilot.config.settings import (
    settings,
    Settings,
    DataSourceConfig,
    DataSourceType,
    PROJECT_ROOT,
)
from querypilot.config.constants import (
    BLOCKED_STATEMENT_TYPES,
    MUTATION_KEYWORDS,
    HIDDEN_VALUE,
    SENSITIVE_TAG,
)

__all__ = [
    "settings",
    "Settings",
    "DataSourceConfig",
    "DataSourceType",
    "PROJECT_ROOT",
    "BLOCKED_STATEMENT_TYPES",
    "MUTATION_KEYWORDS",
    "HIDDEN_VALUE",
    "SENSITIVE_TAG",
]
