"""
Orchestrator routing - supervisor decision and specialist role selection
"""

import re
from typing import Literal, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, SystemMessage
from loguru import logger
from pydantic import BaseModel, Field

from querypilot.agents.loop import sanitize_history
from querypilot.skills.core_assistant import is_search_dialect
from querypilot.skills.roles import AgentRole

HANDOFF = "handoff_to_specialist"
RESPOND_DIRECTLY = "respond_directly"

ROUTE_TAIL_MESSAGES = 4

# Schema / topology questions go to the discovery specialist
DISCOVERY_PATTERNS = [
    r"\bwhat tables\b",
    r"\bwhich tables\b",
    r"\blist (?:all |the )?tables\b",
    r"\bshow (?:me )?(?:all |the )?tables\b",
    r"\bschema\b",
    r"\bstructure of\b",
    r"\brelationships?\b",
    r"\bforeign keys?\b",
    r"\bhow (?:are|is) .+ (?:related|linked|connected)\b",
    r"\bwhat columns\b",
    r"\bwhich columns\b",
    r"\bcolumns? (?:of|in) (?:the )?\w+ table\b",
]

ROUTER_PROMPT = """You route messages for a data assistant that turns questions into database or search queries.

Decide:
- handoff_to_specialist: the user wants data, a query, a statement, or information about the
  tables, fields or indices of their data source. Follow-ups to an earlier query also count.
- respond_directly: greetings, thanks, small talk, or general questions that need no data source.

When unsure, choose handoff_to_specialist."""


class RouteDecision(BaseModel):
    """Supervisor routing decision"""
    route: Literal["handoff_to_specialist", "respond_directly"] = Field(
        description="Where the latest user message should go."
    )
    reason: str = Field(default="", description="One short sentence explaining the choice.")


async def route(conversation_tail: Sequence[BaseMessage], llm: BaseChatModel) -> str:
    """
    Decide whether the latest message needs the data specialist.

    One structured-output call over the last few messages. Any failure or
    unexpected value falls back to the specialist.
    """
    tail = sanitize_history(conversation_tail, ROUTE_TAIL_MESSAGES)
    try:
        structured_llm = llm.with_structured_output(RouteDecision)
        decision = await structured_llm.ainvoke([SystemMessage(content=ROUTER_PROMPT), *tail])
    except Exception as e:
        logger.warning(f"Supervisor routing failed, handing off to specialist: {e}")
        return HANDOFF

    if isinstance(decision, RouteDecision):
        value = decision.route
    elif isinstance(decision, dict):
        value = decision.get("route")
    else:
        value = None

    if value not in (HANDOFF, RESPOND_DIRECTLY):
        logger.warning(f"Invalid route '{value}', handing off to specialist")
        return HANDOFF

    logger.info(f"Supervisor route: {value}")
    return value


def select_role(question: str, dialect: str) -> AgentRole:
    """Pick the specialist: Lucene for search sources, discovery for schema questions, else generator."""
    if is_search_dialect(dialect):
        return AgentRole.LUCENE
    text = question.lower()
    if any(re.search(pattern, text) for pattern in DISCOVERY_PATTERNS):
        return AgentRole.DISCOVERY
    return AgentRole.GENERATOR
