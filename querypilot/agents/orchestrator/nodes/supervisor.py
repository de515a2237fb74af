"""
Supervisor node - hands data questions to the specialist
"""

from langchain_core.messages import HumanMessage

from querypilot.agents.orchestrator.context import OrchestratorContext
from querypilot.agents.orchestrator.routing import route
from querypilot.agents.orchestrator.state import OrchestratorState
from querypilot.agents.utils import trace_step


@trace_step("supervisor")
async def supervisor_node(state: OrchestratorState, ctx: OrchestratorContext) -> OrchestratorState:
    """Route the latest message; sets next_step."""
    tail = [*state.get("history", []), HumanMessage(content=state["question"])]
    state["next_step"] = await route(tail, ctx.supervisor_llm)
    return state
