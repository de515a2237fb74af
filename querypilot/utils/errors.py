"""
Custom error classes for the application
"""


class AgentError(Exception):
    """Base exception for agent errors"""
    pass


class ConfigurationError(AgentError):
    """Missing or invalid AI / data source configuration"""
    pass


class DataSourceNotFoundError(AgentError):
    """No data source registered under the requested id"""
    pass


class UnsupportedDialectError(AgentError):
    """Operation not available for the data source dialect"""
    pass


class SearchQueryError(AgentError):
    """Elasticsearch rejected a request (unknown index, malformed query)"""
    pass


class InfrastructureError(AgentError):
    """The model API or a data source cannot be reached; fatal to a run"""
    pass


class DataSourceUnavailableError(InfrastructureError):
    """Connection to a database or search cluster failed"""
    pass


class ModelUnavailableError(InfrastructureError):
    """The model API call failed"""
    pass
