"""
Orchestrator workflow state
"""

from typing import Any, List, Optional, TypedDict

from langchain_core.messages import BaseMessage


class OrchestratorState(TypedDict, total=False):
    """State for the orchestrator workflow"""
    question: str
    history: List[BaseMessage]
    dialect: str
    data_source_id: Optional[int]
    user_id: Optional[str]
    next_step: str  # handoff_to_specialist | respond_directly
    role: Optional[str]
    outcome: Optional[Any]  # LoopOutcome from the data agent
    final_answer: Optional[str]
    cancel_event: Optional[Any]  # asyncio.Event set by the caller to stop the run
    trace_id: str
