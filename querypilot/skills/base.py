"""
Skill base class - a named bundle of prompt fragment and tools
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from langchain_core.tools import BaseTool

from querypilot.tools.base import AgentServices


@dataclass(frozen=True)
class SkillContext:
    """Per-run facts every skill may use when rendering prompts and tools."""
    dialect: str
    data_source_id: Optional[int] = None
    user_id: Optional[str] = None


class Skill(ABC):
    """A capability the agent can be given: one prompt fragment plus its tools."""

    name: str = "skill"

    def __init__(self, services: AgentServices):
        self.services = services

    @abstractmethod
    def get_system_prompt(self, context: SkillContext) -> str:
        """Prompt fragment appended to the composed system prompt."""

    @abstractmethod
    def get_tools(self, context: SkillContext) -> List[BaseTool]:
        """Fresh tool instances bound to this skill's services."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
