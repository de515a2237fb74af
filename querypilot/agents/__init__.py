"""
Agents - the tool-calling loop and the routing orchestrator
"""

from querypilot.agents.loop import AgentLoop, LoopConfig, LoopOutcome, LoopStatus, StreamEvent
from querypilot.agents.orchestrator import OrchestratorAgent

__all__ = [
    "AgentLoop",
    "LoopConfig",
    "LoopOutcome",
    "LoopStatus",
    "StreamEvent",
    "OrchestratorAgent",
]
