"""
Respond-directly node - plain model reply for messages that need no data
"""

from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.config import get_stream_writer
from loguru import logger

from querypilot.agents.loop import ErrorKind, StreamEvent, sanitize_history
from querypilot.agents.orchestrator.context import OrchestratorContext
from querypilot.agents.orchestrator.state import OrchestratorState
from querypilot.agents.utils import trace_step
from querypilot.llm.response_utils import extract_text_from_response

DIRECT_RESPONSE_PROMPT = """You are a friendly data assistant that helps users write database and search queries.
Answer briefly. If the user seems to want data, invite them to ask a concrete question about it."""


@trace_step("respond_directly")
async def respond_directly_node(state: OrchestratorState, ctx: OrchestratorContext) -> OrchestratorState:
    """Answer without tools and emit a single response (or error) event."""
    writer = get_stream_writer()
    messages = sanitize_history(
        [*state.get("history", []), HumanMessage(content=state["question"])],
        ctx.loop_config.max_history_messages,
    )
    try:
        response = await ctx.llm.ainvoke([SystemMessage(content=DIRECT_RESPONSE_PROMPT), *messages])
    except Exception as e:
        logger.error(f"Direct response failed: {e}")
        message = f"AI reasoning failed: {e}"
        writer(StreamEvent(type="error", content=message, error_kind=ErrorKind.INFRASTRUCTURE.value))
        state["final_answer"] = message
        return state

    answer = extract_text_from_response(response)
    writer(StreamEvent(type="response", content=answer))
    state["final_answer"] = answer
    return state
