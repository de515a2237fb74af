"""
Orchestrator - supervisor routing and the LangGraph workflow
"""

from querypilot.agents.orchestrator.agent import OrchestratorAgent
from querypilot.agents.orchestrator.routing import (
    HANDOFF,
    RESPOND_DIRECTLY,
    RouteDecision,
    route,
    select_role,
)

__all__ = [
    "OrchestratorAgent",
    "HANDOFF",
    "RESPOND_DIRECTLY",
    "RouteDecision",
    "route",
    "select_role",
]
