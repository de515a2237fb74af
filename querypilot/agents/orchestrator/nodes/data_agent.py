"""
Data agent node - runs the agent loop for the selected specialist role
"""

from langgraph.config import get_stream_writer
from loguru import logger

from querypilot.agents.loop import AgentLoop, LoopStatus
from querypilot.agents.orchestrator.context import OrchestratorContext
from querypilot.agents.orchestrator.routing import select_role
from querypilot.agents.orchestrator.state import OrchestratorState
from querypilot.agents.utils import trace_step
from querypilot.skills.base import SkillContext


@trace_step("data_agent")
async def data_agent_node(state: OrchestratorState, ctx: OrchestratorContext) -> OrchestratorState:
    """Run the loop and forward its events to the custom stream."""
    writer = get_stream_writer()
    context = SkillContext(
        dialect=state["dialect"],
        data_source_id=state.get("data_source_id"),
        user_id=state.get("user_id"),
    )
    role = select_role(state["question"], context.dialect)
    logger.info(f"Executing data agent as {role.value} for: '{state['question']}'")

    loop = AgentLoop.for_role(role, ctx.llm, ctx.services, context, loop_config=ctx.loop_config)
    loop_run = loop.start(
        state["question"],
        state.get("history", []),
        context,
        cancel_event=state.get("cancel_event"),
    )
    async for event in loop_run.events():
        writer(event)

    outcome = loop_run.outcome
    state["role"] = role.value
    state["outcome"] = outcome
    if outcome.status == LoopStatus.SUBMITTED:
        state["final_answer"] = outcome.submission.explanation
    elif outcome.status == LoopStatus.CLARIFIED:
        state["final_answer"] = outcome.clarification.question
    elif outcome.status == LoopStatus.ANSWERED:
        state["final_answer"] = outcome.answer
    else:
        state["final_answer"] = outcome.error_message
    return state
