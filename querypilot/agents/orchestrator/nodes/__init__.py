"""
Orchestrator workflow nodes
"""

from querypilot.agents.orchestrator.nodes.data_agent import data_agent_node
from querypilot.agents.orchestrator.nodes.respond_directly import respond_directly_node
from querypilot.agents.orchestrator.nodes.supervisor import supervisor_node

__all__ = [
    "data_agent_node",
    "respond_directly_node",
    "supervisor_node",
]
