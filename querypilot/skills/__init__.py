"""
Skills - prompt fragments plus tools, composed per agent role
"""

from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.composer import ComposedSkills, compose_skills
from querypilot.skills.core_assistant import CoreAssistantSkill
from querypilot.skills.discovery import DiscoverySkill
from querypilot.skills.lucene import LuceneSkill
from querypilot.skills.roles import AgentRole, resolve_role, skills_for_role
from querypilot.skills.security import SecuritySkill

__all__ = [
    "Skill",
    "SkillContext",
    "ComposedSkills",
    "compose_skills",
    "CoreAssistantSkill",
    "DiscoverySkill",
    "LuceneSkill",
    "SecuritySkill",
    "AgentRole",
    "resolve_role",
    "skills_for_role",
]
