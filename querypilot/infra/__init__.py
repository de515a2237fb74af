"""
Infrastructure layer - database pools and search cluster client
"""

from querypilot.infra.database import ConnectionManager
from querypilot.infra.elasticsearch import ElasticsearchClient

__all__ = ["ConnectionManager", "ElasticsearchClient"]
