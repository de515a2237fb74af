"""
Agentic control loop - tool-calling model loop with a validate-before-submit gate
"""

from querypilot.agents.loop.events import StreamEvent
from querypilot.agents.loop.loop import (
    AgentLoop,
    LoopConfig,
    LoopRun,
    build_submission,
    sanitize_history,
)
from querypilot.agents.loop.state import (
    Clarification,
    ErrorKind,
    LoopOutcome,
    LoopStatus,
    RunState,
    Submission,
)

__all__ = [
    "StreamEvent",
    "AgentLoop",
    "LoopConfig",
    "LoopRun",
    "build_submission",
    "sanitize_history",
    "Clarification",
    "ErrorKind",
    "LoopOutcome",
    "LoopStatus",
    "RunState",
    "Submission",
]
