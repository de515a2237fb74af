"""
Orchestrator Agent - Main LangGraph workflow

Routes each message either to the data specialist (agent loop) or to a
direct reply.
"""

import asyncio
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langgraph.graph import END, StateGraph
from loguru import logger

from querypilot.agents.loop import LoopConfig, StreamEvent
from querypilot.agents.orchestrator.context import OrchestratorContext
from querypilot.agents.orchestrator.nodes import (
    data_agent_node,
    respond_directly_node,
    supervisor_node,
)
from querypilot.agents.orchestrator.routing import HANDOFF
from querypilot.agents.orchestrator.state import OrchestratorState
from querypilot.config.settings import settings
from querypilot.infra.database import ConnectionManager
from querypilot.llm.client import create_llm
from querypilot.llm.config import AiConfigProvider
from querypilot.skills.base import SkillContext
from querypilot.tools.base import AgentServices


def _route_after_supervisor(state: OrchestratorState) -> str:
    """Determine next node after the supervisor."""
    if state.get("next_step", HANDOFF) == HANDOFF:
        return "data_agent"
    return "respond_directly"


class OrchestratorAgent:
    """
    Entry point for a conversation turn.

    Workflow: START → supervisor → [data_agent | respond_directly] → END

    Models come from `llm` / `supervisor_llm` when given, otherwise from
    `ai_config_provider` (environment settings when that is None too).
    """

    def __init__(
        self,
        services: Optional[AgentServices] = None,
        llm: Optional[BaseChatModel] = None,
        supervisor_llm: Optional[BaseChatModel] = None,
        loop_config: Optional[LoopConfig] = None,
        ai_config_provider: Optional[AiConfigProvider] = None,
    ):
        self.services = services or AgentServices(ConnectionManager())
        self.llm = llm or create_llm(provider=ai_config_provider)
        if supervisor_llm is None:
            supervisor_llm = llm if llm is not None else create_llm(
                provider=ai_config_provider, temperature=settings.supervisor_temperature
            )

        self.ctx = OrchestratorContext(
            llm=self.llm,
            supervisor_llm=supervisor_llm,
            services=self.services,
            loop_config=loop_config or LoopConfig.from_settings(self.services.settings),
        )
        self.workflow = self._build_workflow()

        sources = len(self.services.connections.list_data_sources())
        logger.info(f"Initialized OrchestratorAgent ({sources} data source(s))")

    def _build_workflow(self):
        """Build the LangGraph workflow."""
        ctx = self.ctx

        async def supervisor(state: OrchestratorState) -> OrchestratorState:
            return await supervisor_node(state, ctx)

        async def data_agent(state: OrchestratorState) -> OrchestratorState:
            return await data_agent_node(state, ctx)

        async def respond_directly(state: OrchestratorState) -> OrchestratorState:
            return await respond_directly_node(state, ctx)

        workflow = StateGraph(OrchestratorState)
        workflow.add_node("supervisor", supervisor)
        workflow.add_node("data_agent", data_agent)
        workflow.add_node("respond_directly", respond_directly)

        workflow.set_entry_point("supervisor")
        workflow.add_conditional_edges(
            "supervisor",
            _route_after_supervisor,
            {"data_agent": "data_agent", "respond_directly": "respond_directly"},
        )
        workflow.add_edge("data_agent", END)
        workflow.add_edge("respond_directly", END)
        return workflow.compile()

    def context_for(self, data_source_id: Optional[int], user_id: Optional[str] = None) -> SkillContext:
        """Build the skill context for a data source (dialect comes from its registration)."""
        if data_source_id is None:
            return SkillContext(dialect="mysql", data_source_id=None, user_id=user_id)
        dialect = self.services.connections.get_dialect(data_source_id)
        return SkillContext(dialect=dialect, data_source_id=data_source_id, user_id=user_id)

    @staticmethod
    def _initial_state(
        question: str,
        history: Sequence[BaseMessage],
        context: SkillContext,
        cancel_event: Optional[asyncio.Event],
    ) -> OrchestratorState:
        return {
            "question": question,
            "history": list(history),
            "dialect": context.dialect,
            "data_source_id": context.data_source_id,
            "user_id": context.user_id,
            "next_step": HANDOFF,
            "role": None,
            "outcome": None,
            "final_answer": None,
            "cancel_event": cancel_event,
        }

    async def astream(
        self,
        question: str,
        history: Sequence[BaseMessage] = (),
        context: Optional[SkillContext] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream the events of one turn."""
        context = context or self.context_for(None)
        logger.info(f"\n{'='*80}\nORCHESTRATOR QUESTION: {question}\n{'='*80}")
        initial_state = self._initial_state(question, history, context, cancel_event)
        async for mode, chunk in self.workflow.astream(initial_state, stream_mode=["custom", "values"]):
            if mode == "custom" and isinstance(chunk, StreamEvent):
                yield chunk

    async def ainvoke(
        self,
        question: str,
        history: Sequence[BaseMessage] = (),
        context: Optional[SkillContext] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        """Run one turn and return the final state (including the loop outcome, if any)."""
        context = context or self.context_for(None)
        logger.info(f"\n{'='*80}\nORCHESTRATOR QUESTION: {question}\n{'='*80}")
        final_state = await self.workflow.ainvoke(self._initial_state(question, history, context, cancel_event))
        logger.info(f"Route taken: {final_state.get('next_step')} | role={final_state.get('role')}")
        return final_state
