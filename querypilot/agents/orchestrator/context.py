"""
Orchestrator context - dependencies passed to workflow nodes
"""

from dataclasses import dataclass

from langchain_core.language_models import BaseChatModel

from querypilot.agents.loop import LoopConfig
from querypilot.tools.base import AgentServices


@dataclass
class OrchestratorContext:
    """Context holding dependencies for orchestrator nodes (shared, read-only)"""

    llm: BaseChatModel
    supervisor_llm: BaseChatModel
    services: AgentServices
    loop_config: LoopConfig
