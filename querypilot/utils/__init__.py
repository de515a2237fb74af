"""
Shared utilities - logging and error types
"""

from querypilot.utils.errors import (
    AgentError,
    ConfigurationError,
    DataSourceNotFoundError,
    DataSourceUnavailableError,
    InfrastructureError,
    ModelUnavailableError,
    SearchQueryError,
    UnsupportedDialectError,
)

__all__ = [
    "AgentError",
    "ConfigurationError",
    "DataSourceNotFoundError",
    "DataSourceUnavailableError",
    "InfrastructureError",
    "ModelUnavailableError",
    "SearchQueryError",
    "UnsupportedDialectError",
]
