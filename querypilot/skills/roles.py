"""
Role presets - which skills each agent role is given
"""

from enum import Enum
from typing import List, Optional

from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.core_assistant import CoreAssistantSkill, is_search_dialect
from querypilot.skills.discovery import DiscoverySkill
from querypilot.skills.lucene import LuceneSkill
from querypilot.skills.security import SecuritySkill
from querypilot.tools.base import AgentServices


class AgentRole(str, Enum):
    GENERATOR = "generator"
    DISCOVERY = "discovery"
    SECURITY = "security"
    LUCENE = "lucene"

    @property
    def label(self) -> str:
        return ROLE_TITLES[self]


ROLE_TITLES = {
    AgentRole.GENERATOR: "a SQL generator",
    AgentRole.DISCOVERY: "a schema discovery specialist",
    AgentRole.SECURITY: "a SQL security auditor",
    AgentRole.LUCENE: "a Lucene search specialist",
}


def resolve_role(role: AgentRole, dialect: str) -> AgentRole:
    """Search data sources always get the Lucene preset."""
    return AgentRole.LUCENE if is_search_dialect(dialect) else role


def skills_for_role(
    role: AgentRole,
    services: AgentServices,
    context: SkillContext,
    audited_sql: Optional[str] = None,
) -> List[Skill]:
    """
    Build the skill list for a role.

    SECURITY injects `audited_sql` into its prompt. GENERATOR carries the
    security skill so its submissions can be validated.
    """
    role = resolve_role(role, context.dialect)
    if role == AgentRole.LUCENE:
        return [CoreAssistantSkill(services), LuceneSkill(services)]
    if role == AgentRole.DISCOVERY:
        return [DiscoverySkill(services), CoreAssistantSkill(services)]
    if role == AgentRole.SECURITY:
        return [
            SecuritySkill(services, audited_sql=audited_sql),
            DiscoverySkill(services, lite=True),
            CoreAssistantSkill(services),
        ]
    return [
        CoreAssistantSkill(services),
        DiscoverySkill(services, lite=True),
        SecuritySkill(services),
    ]
